"""Centralised helpers for Playwright launch, stealth profile and timing policy."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

from playwright.async_api import Browser, BrowserContext, Playwright
from playwright_stealth import Stealth

from stockscout.logging_config import get_logger

LOGGER = get_logger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_VIEWPORT = {"width": 1440, "height": 900}


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class ScrapePolicy:
    """Attempt counts, intervals and timeouts used across one run."""

    location_poll_attempts: int = 5
    location_poll_interval_s: float = 9.0
    confirm_poll_attempts: int = 4
    confirm_poll_interval_s: float = 5.0
    search_results_timeout_ms: int = 8000
    reveal_timeout_ms: int = 5000
    navigation_timeout_ms: int = 30000
    grid_timeout_ms: int = 15000
    navigation_attempts: int = 2
    hard_page_ceiling: int = 50
    hard_record_ceiling: int = 5000
    scroll_step_px: int = 600
    scroll_pause_ms: int = 150
    scroll_max_steps: int = 200


def scrape_policy() -> ScrapePolicy:
    """Build the run policy from defaults plus ``STOCKSCOUT_*`` overrides."""

    defaults = ScrapePolicy()
    return ScrapePolicy(
        location_poll_attempts=max(
            1, _env_int("STOCKSCOUT_LOCATION_POLL_ATTEMPTS", defaults.location_poll_attempts)
        ),
        location_poll_interval_s=max(
            0.0, _env_float("STOCKSCOUT_LOCATION_POLL_INTERVAL_S", defaults.location_poll_interval_s)
        ),
        confirm_poll_attempts=max(
            1, _env_int("STOCKSCOUT_CONFIRM_POLL_ATTEMPTS", defaults.confirm_poll_attempts)
        ),
        confirm_poll_interval_s=max(
            0.0, _env_float("STOCKSCOUT_CONFIRM_POLL_INTERVAL_S", defaults.confirm_poll_interval_s)
        ),
        search_results_timeout_ms=_env_int(
            "STOCKSCOUT_SEARCH_RESULTS_TIMEOUT_MS", defaults.search_results_timeout_ms
        ),
        reveal_timeout_ms=_env_int("STOCKSCOUT_REVEAL_TIMEOUT_MS", defaults.reveal_timeout_ms),
        navigation_timeout_ms=_env_int(
            "STOCKSCOUT_NAVIGATION_TIMEOUT_MS", defaults.navigation_timeout_ms
        ),
        grid_timeout_ms=_env_int("STOCKSCOUT_GRID_TIMEOUT_MS", defaults.grid_timeout_ms),
        navigation_attempts=max(
            1, _env_int("STOCKSCOUT_NAVIGATION_ATTEMPTS", defaults.navigation_attempts)
        ),
        hard_page_ceiling=max(1, _env_int("STOCKSCOUT_MAX_PAGES", defaults.hard_page_ceiling)),
        hard_record_ceiling=max(
            1, _env_int("STOCKSCOUT_MAX_RECORDS", defaults.hard_record_ceiling)
        ),
        scroll_step_px=max(100, _env_int("STOCKSCOUT_SCROLL_STEP_PX", defaults.scroll_step_px)),
        scroll_pause_ms=max(0, _env_int("STOCKSCOUT_SCROLL_PAUSE_MS", defaults.scroll_pause_ms)),
        scroll_max_steps=max(1, _env_int("STOCKSCOUT_SCROLL_MAX_STEPS", defaults.scroll_max_steps)),
    )


@lru_cache(maxsize=1)
def headless_enabled() -> bool:
    """Chromium runs headless unless STOCKSCOUT_HEADLESS is falsy."""

    return _as_bool(os.getenv("STOCKSCOUT_HEADLESS"), True)


def stealth_enabled() -> bool:
    """Return True when the stealth browser profile should be applied."""

    return _as_bool(os.getenv("STOCKSCOUT_STEALTH"), True)


@lru_cache(maxsize=1)
def _stealth_instance() -> Stealth | None:
    if not stealth_enabled():
        return None

    lang_env = os.getenv("STOCKSCOUT_LANGS") or "en-US,en"
    langs = tuple(
        entry.strip()
        for entry in lang_env.split(",")
        if entry.strip()
    ) or ("en-US", "en")

    return Stealth(
        navigator_languages_override=langs[:2],
        navigator_platform_override=os.getenv("STOCKSCOUT_PLATFORM", "Win32"),
        navigator_user_agent_override=resolve_user_agent(),
        navigator_vendor_override=os.getenv("STOCKSCOUT_VENDOR", "Google Inc."),
    )


async def apply_stealth(context: BrowserContext) -> None:
    """Apply the stealth profile to *context* when enabled."""

    instance = _stealth_instance()
    if instance is None:
        return
    await instance.apply_stealth_async(context)


def resolve_user_agent() -> str | None:
    value = os.getenv("STOCKSCOUT_USER_AGENT") or os.getenv("USER_AGENT")
    if not value:
        return None
    trimmed = value.strip()
    return trimmed or None


def _proxy_config() -> dict[str, str] | None:
    raw = os.getenv("STOCKSCOUT_PROXY")
    if not raw:
        return None
    parsed = urlparse(raw)
    if not parsed.scheme:
        return {"server": f"http://{raw}"}
    return {"server": raw}


def slow_mo_ms() -> int | None:
    value = _env_int("STOCKSCOUT_SLOW_MO_MS", 0)
    return value if value > 0 else None


def launch_kwargs() -> dict[str, Any]:
    """Return kwargs passed to chromium.launch."""

    args = [
        "--disable-blink-features=AutomationControlled",
        "--disable-dev-shm-usage",
        "--disable-infobars",
        "--lang=en-US",
        "--no-default-browser-check",
        "--window-size=1440,960",
    ]
    extra_args = os.getenv("STOCKSCOUT_CHROMIUM_ARGS")
    if extra_args:
        args.extend(shlex.split(extra_args))

    kwargs: dict[str, Any] = {
        "headless": headless_enabled(),
        "args": args,
    }

    channel = os.getenv("STOCKSCOUT_BROWSER_CHANNEL")
    if channel:
        kwargs["channel"] = channel

    proxy = _proxy_config()
    if proxy:
        kwargs["proxy"] = proxy

    slow_mo = slow_mo_ms()
    if slow_mo:
        kwargs["slow_mo"] = slow_mo

    return kwargs


def context_kwargs() -> dict[str, Any]:
    """Return kwargs passed to browser.new_context."""

    kwargs: dict[str, Any] = {
        "viewport": dict(DEFAULT_VIEWPORT),
        "locale": "en-US",
    }
    user_agent = resolve_user_agent()
    if user_agent:
        kwargs["user_agent"] = user_agent
    return kwargs


async def launch_browser(playwright: Playwright) -> tuple[Browser, BrowserContext]:
    """Launch Chromium and open a stealth-profiled context."""

    browser = await playwright.chromium.launch(**launch_kwargs())
    context = await browser.new_context(**context_kwargs())
    await apply_stealth(context)
    return browser, context


async def close_browser(browser: Browser | None, context: BrowserContext | None) -> None:
    """Close *context* then *browser*; failures are logged, never raised."""

    if context is not None:
        try:
            await context.close()
        except Exception as exc:
            LOGGER.debug("Close failed during cleanup: %s", exc)

    if browser is not None:
        try:
            await browser.close()
        except Exception as exc:
            LOGGER.debug("Close failed during cleanup: %s", exc)


def apply_wait_policy(min_ms: int, max_ms: int) -> tuple[int, int]:
    """Scale a human_wait() range by the STOCKSCOUT_WAIT_* overrides."""

    min_override = _env_int("STOCKSCOUT_WAIT_MIN_MS", min_ms)
    max_override = _env_int("STOCKSCOUT_WAIT_MAX_MS", max_ms)
    multiplier = max(_env_float("STOCKSCOUT_WAIT_MULTIPLIER", 1.0), 0.0)

    scaled_min = int(min_override * multiplier)
    scaled_max = int(max_override * multiplier)
    if scaled_max < scaled_min:
        scaled_max = scaled_min
    return scaled_min, scaled_max
