"""Helper utilities for safely interacting with retailer DOM content."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable, Iterable

from playwright.async_api import Error as PlaywrightError
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from stockscout.logging_config import get_logger
from stockscout.playwright_env import apply_wait_policy

LOGGER = get_logger(__name__)

FieldStrategy = Callable[[Any], Awaitable["str | None"]]
Lookup = Callable[[], Awaitable[Any]]

_SCROLL_STEP_SCRIPT = """(step) => {
    window.scrollBy(0, step);
    const doc = document.scrollingElement || document.documentElement;
    return window.scrollY + window.innerHeight >= doc.scrollHeight - 2;
}"""


async def human_wait(
    min_ms: int = 350,
    max_ms: int = 900,
    *,
    obey_policy: bool = True,
) -> None:
    """Sleep for a random, human-like interval between the provided bounds."""

    if min_ms < 0:
        min_ms = 0
    if max_ms < min_ms:
        max_ms = min_ms

    if obey_policy:
        min_ms, max_ms = apply_wait_policy(min_ms, max_ms)

    delay = random.uniform(min_ms / 1000, max_ms / 1000)
    await asyncio.sleep(delay)


async def inner_text_safe(locator: Any, timeout: int = 3000) -> str | None:
    """Return the stripped inner text for *locator* while ignoring DOM failures."""

    if locator is None:
        return None

    try:
        result = await locator.inner_text(timeout=timeout)
    except PlaywrightError:
        return None

    if result is None:
        return None

    return result.strip()


async def get_attribute_safe(locator: Any, attribute: str) -> str | None:
    if locator is None:
        return None
    try:
        value = await locator.get_attribute(attribute)
    except PlaywrightError:
        return None
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


async def first_present(root: Any, selector: str) -> Any | None:
    """Return ``root.locator(selector).first`` if it matches, else None."""

    locator = root.locator(selector).first
    try:
        if await locator.count() > 0:
            return locator
    except PlaywrightError:
        return None
    return None


def present(root: Any, selector: str) -> Lookup:
    """Build a lookup for :func:`poll_until_present` checking *selector*."""

    async def _lookup() -> Any | None:
        return await first_present(root, selector)

    return _lookup


async def poll_until_present(
    lookup: Lookup,
    *,
    attempts: int,
    interval_s: float,
    label: str = "element",
) -> Any | None:
    """Call *lookup* up to *attempts* times, *interval_s* apart.

    Returns the first non-None lookup result, or None once attempts run out.
    """

    def _log_retry(retry_state: Any) -> None:
        LOGGER.info(
            "Waiting for %s | attempt=%s/%s | next check in %.1fs",
            label,
            retry_state.attempt_number,
            attempts,
            interval_s,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(attempts, 1)),
        wait=wait_fixed(max(interval_s, 0)),
        retry=retry_if_result(lambda found: found is None),
        retry_error_callback=lambda _state: None,
        before_sleep=_log_retry,
    )
    return await retrying(lookup)


def text_of(selector: str) -> FieldStrategy:
    async def _strategy(root: Any) -> str | None:
        locator = await first_present(root, selector)
        return await inner_text_safe(locator)

    return _strategy


def texts_of(selector: str, separator: str = " | ") -> FieldStrategy:
    """Join the inner text of every match, e.g. multi-line fulfillment blocks."""

    async def _strategy(root: Any) -> str | None:
        try:
            texts = await root.locator(selector).all_inner_texts()
        except PlaywrightError:
            return None
        cleaned = [text.strip() for text in texts if text and text.strip()]
        return separator.join(cleaned) or None

    return _strategy


def attr_of(selector: str, *attributes: str) -> FieldStrategy:
    async def _strategy(root: Any) -> str | None:
        locator = await first_present(root, selector)
        for attribute in attributes:
            value = await get_attribute_safe(locator, attribute)
            if value:
                return value
        return None

    return _strategy


async def resolve_field(root: Any, strategies: Iterable[FieldStrategy]) -> str:
    """Return the first non-empty strategy result, or ``""``."""

    for strategy in strategies:
        value = await strategy(root)
        if value and value.strip():
            return value.strip()
    return ""


async def auto_scroll(
    page: Any,
    *,
    step_px: int = 600,
    pause_ms: int = 150,
    max_steps: int = 200,
) -> bool:
    """Scroll in steps until the viewport reaches the document bottom.

    Returns True once the bottom is reached, False if the step budget ran out
    or the page refused to evaluate script.
    """

    for _ in range(max_steps):
        try:
            reached = await page.evaluate(_SCROLL_STEP_SCRIPT, step_px)
        except PlaywrightError as exc:
            LOGGER.debug("Scroll step failed: %s", exc)
            return False
        if reached:
            return True
        await asyncio.sleep(pause_ms / 1000)
    LOGGER.warning("Scroll budget exhausted after %s steps", max_steps)
    return False


async def find_next_control(page: Any, selector: str) -> Any | None:
    """Return an enabled, visible next-page control, or None."""

    locator = await first_present(page, selector)
    if locator is None:
        return None

    try:
        if not (await locator.is_visible() and await locator.is_enabled()):
            return None
    except PlaywrightError:
        return None

    if (await get_attribute_safe(locator, "aria-disabled") or "").lower() == "true":
        return None
    css_class = (await get_attribute_safe(locator, "class") or "").lower()
    if "disabled" in css_class.split():
        return None
    return locator
