"""Best Buy retailer scraping interface."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random_exponential

import stockscout.selectors as selectors
from stockscout.diagnostics import capture_failure, capture_screenshot
from stockscout.errors import (
    LocationControlNotFound,
    NoLocationResults,
    PageLoadError,
    ProductGridNotFound,
    StoreContextError,
)
from stockscout.extractors.dom_utils import (
    auto_scroll,
    find_next_control,
    first_present,
    human_wait,
    poll_until_present,
    present,
)
from stockscout.extractors.product_grid import extract_page_records
from stockscout.extractors.schemas import PageCursor, ProductRecord, StoreLocation
from stockscout.logging_config import get_logger
from stockscout.playwright_env import ScrapePolicy, close_browser, launch_browser

LOGGER = get_logger(__name__)
BASE_URL = "https://www.bestbuy.com"


def build_search_url(search_term: str, base_url: str = BASE_URL) -> str:
    query = urlencode({selectors.SEARCH_QUERY_PARAM: search_term})
    return f"{base_url.rstrip('/')}{selectors.SEARCH_PATH}?{query}"


async def _goto(
    page: Any,
    url: str,
    policy: ScrapePolicy,
    *,
    store_key: str | None = None,
    category: str | None = None,
    page_index: int | None = None,
) -> None:
    """Navigate with a bounded retry; raise PageLoadError when it keeps failing."""

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.navigation_attempts),
        wait=wait_random_exponential(multiplier=0.5, max=5),
        retry=retry_if_exception_type(PlaywrightError),
        reraise=True,
    )
    try:
        await retrying(
            page.goto,
            url,
            wait_until="domcontentloaded",
            timeout=policy.navigation_timeout_ms,
        )
    except PlaywrightError as exc:
        raise PageLoadError(
            store_key=store_key,
            category=category,
            page=page_index,
            url=url,
        ) from exc


async def _safe_wait_for_load(page: Any, state: str, timeout: int) -> None:
    try:
        await page.wait_for_load_state(state, timeout=timeout)
    except PlaywrightError:
        return


# ---------------------------------------------------------------------------
# Region / store selection
# ---------------------------------------------------------------------------


async def dismiss_region_splash(page: Any, policy: ScrapePolicy, base_url: str = BASE_URL) -> bool:
    """Pick the US region on the splash screen if it is showing.

    Returns True when the splash was dismissed, False when none was present.
    """

    splash = await first_present(page, selectors.REGION_SPLASH_LINK)
    if splash is None:
        LOGGER.info("No region splash detected; continuing")
        return False

    try:
        await splash.click(timeout=policy.navigation_timeout_ms)
    except PlaywrightError as exc:
        LOGGER.warning("Region splash click failed: %s", exc)
    await _goto(page, base_url.rstrip("/") + selectors.NO_SPLASH_PATH, policy)
    LOGGER.info("Region splash dismissed")
    return True


async def _require_control(
    root: Any,
    page: Any,
    selector: str,
    *,
    attempts: int,
    interval_s: float,
    store_key: str,
    label: str,
) -> Any:
    control = await poll_until_present(
        present(root, selector),
        attempts=attempts,
        interval_s=interval_s,
        label=label,
    )
    if control is None:
        shot = await capture_screenshot(page, f"{store_key}_{label}_missing")
        LOGGER.error(
            "Control not found after %s attempts | control=%s | store=%s | screenshot=%s",
            attempts,
            label,
            store_key,
            shot,
        )
        raise LocationControlNotFound(store_key=store_key, selector=selector)
    return control


async def _store_step(action: Any, *, store_key: str, selector: str, label: str) -> None:
    """Await one store-finder interaction, reporting DOM failures as store errors."""

    try:
        await action
    except PlaywrightError as exc:
        raise StoreContextError(
            f"Store finder step failed: {label}.",
            store_key=store_key,
            selector=selector,
        ) from exc


async def _open_store_finder(page: Any, store_key: str, policy: ScrapePolicy) -> None:
    location_button = await _require_control(
        page,
        page,
        selectors.STORE_LOCATION_BUTTON,
        attempts=policy.location_poll_attempts,
        interval_s=policy.location_poll_interval_s,
        store_key=store_key,
        label="location_control",
    )
    await _store_step(
        location_button.click(timeout=policy.navigation_timeout_ms),
        store_key=store_key,
        selector=selectors.STORE_LOCATION_BUTTON,
        label="location_control",
    )
    await human_wait(400, 900)

    find_another = await _require_control(
        page,
        page,
        selectors.FIND_ANOTHER_STORE,
        attempts=policy.location_poll_attempts,
        interval_s=policy.location_poll_interval_s,
        store_key=store_key,
        label="find_another_store",
    )
    try:
        async with page.expect_navigation(
            wait_until="domcontentloaded",
            timeout=policy.navigation_timeout_ms,
        ):
            await find_another.click(timeout=policy.navigation_timeout_ms)
    except PlaywrightTimeoutError:
        LOGGER.info("Store finder opened without a navigation event | store=%s", store_key)
    except PlaywrightError as exc:
        raise StoreContextError(
            "Store finder step failed: find_another_store.",
            store_key=store_key,
            selector=selectors.FIND_ANOTHER_STORE,
        ) from exc


async def search_store_candidates(
    page: Any,
    location: StoreLocation,
    store_key: str,
    policy: ScrapePolicy,
) -> str:
    """Try each location search candidate in order; return the one that worked."""

    candidates = location.search_attempts()
    for index, candidate in enumerate(candidates, start=1):
        search_input = await _require_control(
            page,
            page,
            selectors.STORE_SEARCH_INPUT,
            attempts=policy.confirm_poll_attempts,
            interval_s=policy.confirm_poll_interval_s,
            store_key=store_key,
            label="store_search_input",
        )
        for action in (
            lambda: search_input.fill(""),
            lambda: search_input.fill(candidate),
            lambda: search_input.press("Enter"),
        ):
            await _store_step(
                action(),
                store_key=store_key,
                selector=selectors.STORE_SEARCH_INPUT,
                label="store_search_input",
            )

        try:
            await page.wait_for_selector(
                selectors.STORE_RESULT_ITEM,
                state="visible",
                timeout=policy.search_results_timeout_ms,
            )
        except PlaywrightTimeoutError:
            artifacts = await capture_failure(page, f"{store_key}_location_search_{index}")
            LOGGER.warning(
                "No store results | store=%s | candidate=%r (%s/%s) | artifacts=%s",
                store_key,
                candidate,
                index,
                len(candidates),
                [str(path) for path in artifacts],
            )
            continue
        except PlaywrightError as exc:
            raise StoreContextError(
                "Store results could not be read.",
                store_key=store_key,
                selector=selectors.STORE_RESULT_ITEM,
                candidates=candidates,
            ) from exc

        LOGGER.info("Store results loaded | store=%s | candidate=%r", store_key, candidate)
        return candidate

    raise NoLocationResults(store_key=store_key, candidates=candidates)


async def _confirm_selected_store(page: Any, store_key: str, policy: ScrapePolicy) -> None:
    card = await _require_control(
        page,
        page,
        selectors.SELECTED_STORE_CARD,
        attempts=policy.confirm_poll_attempts,
        interval_s=policy.confirm_poll_interval_s,
        store_key=store_key,
        label="selected_store_card",
    )
    confirm = await _require_control(
        card,
        page,
        selectors.MAKE_MY_STORE_BUTTON,
        attempts=policy.confirm_poll_attempts,
        interval_s=policy.confirm_poll_interval_s,
        store_key=store_key,
        label="make_my_store_button",
    )
    await _store_step(
        confirm.click(timeout=policy.navigation_timeout_ms),
        store_key=store_key,
        selector=selectors.MAKE_MY_STORE_BUTTON,
        label="make_my_store_button",
    )
    await human_wait(900, 1500)


async def set_store_context(
    page: Any,
    location: StoreLocation,
    store_key: str,
    policy: ScrapePolicy,
    *,
    base_url: str = BASE_URL,
) -> str:
    """Make *location* the active store; return the search candidate used."""

    try:
        await _goto(page, base_url, policy, store_key=store_key)
        await dismiss_region_splash(page, policy, base_url)
    except PageLoadError as exc:
        raise StoreContextError("Store page did not load.", store_key=store_key, url=exc.url) from exc
    await _safe_wait_for_load(page, "domcontentloaded", policy.navigation_timeout_ms)

    await _open_store_finder(page, store_key, policy)
    candidate = await search_store_candidates(page, location, store_key, policy)
    await _confirm_selected_store(page, store_key, policy)

    LOGGER.info(
        "Location confirmed | store=%s | store_id=%s | location=%s | via=%r",
        store_key,
        location.store_id,
        location.display_location or location.city,
        candidate,
    )
    return candidate


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


async def _wait_for_product_grid(
    page: Any,
    policy: ScrapePolicy,
    *,
    store_key: str,
    category: str,
    page_index: int,
) -> None:
    try:
        await page.wait_for_selector(
            selectors.PRODUCT_GRID,
            state="attached",
            timeout=policy.grid_timeout_ms,
        )
    except PlaywrightTimeoutError as exc:
        artifacts = await capture_failure(page, f"{store_key}_{category}_grid_page{page_index}")
        LOGGER.error(
            "Product grid missing | store=%s | category=%s | page=%s | artifacts=%s",
            store_key,
            category,
            page_index,
            [str(path) for path in artifacts],
        )
        raise ProductGridNotFound(
            store_key=store_key,
            category=category,
            page=page_index,
            selector=selectors.PRODUCT_GRID,
            url=getattr(page, "url", None),
        ) from exc
    except PlaywrightError as exc:
        raise PageLoadError(
            f"Results page unusable: {exc}",
            store_key=store_key,
            category=category,
            page=page_index,
            selector=selectors.PRODUCT_GRID,
            url=getattr(page, "url", None),
        ) from exc


async def _advance_page(
    page: Any,
    policy: ScrapePolicy,
    *,
    store_key: str,
    category: str,
    page_index: int,
) -> bool:
    """Click the next-page control. False means the results ran out."""

    next_control = await find_next_control(page, selectors.NEXT_PAGE)
    if next_control is None:
        return False

    try:
        await next_control.scroll_into_view_if_needed()
    except PlaywrightError:
        pass
    await human_wait(300, 700)

    try:
        async with page.expect_navigation(
            wait_until="domcontentloaded",
            timeout=policy.navigation_timeout_ms,
        ):
            await next_control.click(timeout=policy.navigation_timeout_ms)
    except PlaywrightError as exc:
        raise PageLoadError(
            "Next page did not load.",
            store_key=store_key,
            category=category,
            page=page_index + 1,
            url=getattr(page, "url", None),
        ) from exc
    return True


def _merge_rows(
    rows: list[ProductRecord],
    records: list[ProductRecord],
    seen_keys: set[tuple[str, ...]],
    record_ceiling: int,
) -> int:
    """Append unseen *rows* to *records* without passing *record_ceiling*."""

    added = 0
    for row in rows:
        if len(records) >= record_ceiling:
            break
        key = row.dedupe_key()
        if key in seen_keys:
            continue
        seen_keys.add(key)
        records.append(row)
        added += 1
    return added


async def scrape_category(
    page: Any,
    category: str,
    search_term: str,
    records: list[ProductRecord],
    *,
    store_key: str,
    policy: ScrapePolicy,
    page_limit: int | None = None,
    base_url: str = BASE_URL,
) -> int:
    """Walk search-result pages, appending new records to *records*.

    *records* is owned by the caller so rows gathered before a page failure
    survive the exception. Any Playwright failure while walking surfaces as
    :class:`PageLoadError`. Returns the number of pages extracted.
    """

    cursor = PageCursor(max_page_limit=page_limit, hard_page_ceiling=policy.hard_page_ceiling)
    seen_keys = {record.dedupe_key() for record in records}
    search_url = build_search_url(search_term, base_url)

    await _goto(page, search_url, policy, store_key=store_key, category=category, page_index=1)

    pages_scraped = 0
    try:
        while True:
            await _wait_for_product_grid(
                page, policy, store_key=store_key, category=category, page_index=cursor.current_page_index
            )
            await auto_scroll(
                page,
                step_px=policy.scroll_step_px,
                pause_ms=policy.scroll_pause_ms,
                max_steps=policy.scroll_max_steps,
            )

            page_rows = await extract_page_records(
                page,
                category=category,
                reveal_timeout_ms=policy.reveal_timeout_ms,
                base_url=base_url,
            )
            added = _merge_rows(page_rows, records, seen_keys, policy.hard_record_ceiling)
            pages_scraped += 1

            LOGGER.info(
                "Page %s scraped | category=%s | items=%s | new=%s | total=%s",
                cursor.current_page_index,
                category,
                len(page_rows),
                added,
                len(records),
            )

            if cursor.limit_reached():
                if page_limit is None or page_limit > policy.hard_page_ceiling:
                    LOGGER.warning("Hard page ceiling reached at page=%s", cursor.current_page_index)
                else:
                    LOGGER.info("Page limit %s reached", page_limit)
                break

            if len(records) >= policy.hard_record_ceiling:
                LOGGER.warning("Hard record ceiling reached | records=%s", len(records))
                break

            advanced = await _advance_page(
                page,
                policy,
                store_key=store_key,
                category=category,
                page_index=cursor.current_page_index,
            )
            if not advanced:
                LOGGER.info("No further result pages after page=%s", cursor.current_page_index)
                break
            cursor.advance()
    except PlaywrightError as exc:
        raise PageLoadError(
            f"Pagination interrupted: {exc}",
            store_key=store_key,
            category=category,
            page=cursor.current_page_index,
            url=getattr(page, "url", None),
        ) from exc

    return pages_scraped


# ---------------------------------------------------------------------------
# Session runner
# ---------------------------------------------------------------------------


async def run_for_store(
    location: StoreLocation,
    store_key: str,
    category: str,
    search_term: str,
    records: list[ProductRecord],
    *,
    policy: ScrapePolicy,
    page_limit: int | None = None,
    base_url: str = BASE_URL,
    playwright: Any | None = None,
) -> int:
    """Run the full store + category workflow in one browser session.

    Records accumulate into *records*; the browser is closed on every exit.
    """

    async def _execute(active_playwright: Any) -> int:
        browser = None
        context = None
        try:
            browser, context = await launch_browser(active_playwright)
            page = await context.new_page()
            await set_store_context(page, location, store_key, policy, base_url=base_url)
            return await scrape_category(
                page,
                category,
                search_term,
                records,
                store_key=store_key,
                policy=policy,
                page_limit=page_limit,
                base_url=base_url,
            )
        finally:
            await close_browser(browser, context)
            LOGGER.info("Resource cleanup complete | store=%s", store_key)

    if playwright is None:
        async with async_playwright() as auto_playwright:
            return await _execute(auto_playwright)

    return await _execute(playwright)


__all__ = [
    "build_search_url",
    "dismiss_region_splash",
    "run_for_store",
    "scrape_category",
    "search_store_candidates",
    "set_store_context",
]
