"""Best Buy search-result grid extraction.

Each item container on a rendered results page becomes at most one
:class:`ProductRecord`. Items are processed one at a time because the
price-reveal control mutates shared page state; a failure on one item is
logged and that item is dropped without affecting the rest of the page.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError

import stockscout.selectors as selectors
from stockscout.extractors import schemas
from stockscout.extractors.dom_utils import (
    attr_of,
    first_present,
    inner_text_safe,
    resolve_field,
    text_of,
    texts_of,
)
from stockscout.logging_config import get_logger
from stockscout.normalizers import collapse_whitespace, is_pickup_available, normalize_availability

LOGGER = get_logger(__name__)

BASE_URL = "https://www.bestbuy.com"

AVAILABILITY_STRATEGIES = tuple(texts_of(selector) for selector in selectors.AVAILABILITY)
TITLE_STRATEGIES = tuple(text_of(selector) for selector in selectors.TITLE)
LINK_STRATEGIES = tuple(attr_of(selector, "href", "data-href") for selector in selectors.LINK)
IMAGE_STRATEGIES = tuple(attr_of(selector, *selectors.IMG_ATTRIBUTES) for selector in selectors.IMG)
BRAND_STRATEGIES = tuple(text_of(selector) for selector in selectors.BRAND)
PRICE_STRATEGIES = tuple(text_of(selector) for selector in selectors.PRICE)
RESTRICTED_PRICE_STRATEGIES = tuple(text_of(selector) for selector in selectors.RESTRICTED_PRICE)


def _absolute_url(value: str, base_url: str) -> str:
    if not value:
        return ""
    if value.startswith("//"):
        return f"https:{value}"
    return urljoin(base_url, value)


def _first_srcset_entry(value: str) -> str:
    return value.split(",")[0].strip().split(" ")[0] if value else ""


async def reveal_price(card: Any, *, timeout_ms: int) -> str | None:
    """Click the item's "Tap for price" control and read the revealed price.

    Returns None when the control or the revealed price never shows up.
    """

    button = None
    for selector in selectors.PRICE_REVEAL_BUTTON:
        button = await first_present(card, selector)
        if button is not None:
            break
    if button is None:
        LOGGER.debug("No price-reveal control on item")
        return None

    try:
        await button.click(timeout=timeout_ms)
        revealed = card.locator(selectors.REVEALED_PRICE).first
        await revealed.wait_for(state="visible", timeout=timeout_ms)
    except PlaywrightError as exc:
        LOGGER.info("Price reveal did not complete: %s", exc)
        return None

    return await inner_text_safe(revealed)


async def card_to_record(
    card: Any,
    *,
    category: str,
    reveal_timeout_ms: int = 5000,
    base_url: str = BASE_URL,
) -> schemas.ProductRecord | None:
    """Build a record from one item container; None when not pickup-eligible."""

    availability = normalize_availability(await resolve_field(card, AVAILABILITY_STRATEGIES))
    if not is_pickup_available(availability):
        LOGGER.debug("Skipping item without pickup availability: %r", availability)
        return None

    item_name = collapse_whitespace(await resolve_field(card, TITLE_STRATEGIES))
    link = _absolute_url(await resolve_field(card, LINK_STRATEGIES), base_url)
    image_url = _absolute_url(
        _first_srcset_entry(await resolve_field(card, IMAGE_STRATEGIES)), base_url
    )
    brand = collapse_whitespace(await resolve_field(card, BRAND_STRATEGIES))

    restricted = await resolve_field(card, RESTRICTED_PRICE_STRATEGIES)
    price = schemas.parse_price(restricted) if restricted else ""
    if not price:
        price = schemas.parse_price(await resolve_field(card, PRICE_STRATEGIES))

    if schemas.is_price_placeholder(price):
        revealed = await reveal_price(card, timeout_ms=reveal_timeout_ms)
        revealed_price = schemas.parse_price(revealed)
        if revealed_price and revealed_price != schemas.TAP_FOR_PRICE:
            price = revealed_price

    return schemas.ProductRecord(
        item_name=item_name,
        price=price,
        merchant_supplied_id=schemas.extract_sku(link),
        brand=brand or None,
        category=category,
        image_url=image_url or None,
    )


async def extract_page_records(
    page: Any,
    *,
    category: str,
    reveal_timeout_ms: int = 5000,
    base_url: str = BASE_URL,
) -> list[schemas.ProductRecord]:
    """Extract every pickup-eligible item on the current page; never raises."""

    try:
        cards = page.locator(selectors.ITEM_CONTAINER)
        total = await cards.count()
    except PlaywrightError as exc:
        LOGGER.warning("Item containers unavailable: %s", exc)
        return []

    records: list[schemas.ProductRecord] = []
    skipped = 0
    for index in range(total):
        try:
            record = await card_to_record(
                cards.nth(index),
                category=category,
                reveal_timeout_ms=reveal_timeout_ms,
                base_url=base_url,
            )
        except Exception as exc:
            LOGGER.warning("Skipping item index=%s after extraction error: %s", index, exc)
            skipped += 1
            continue
        if record is None:
            skipped += 1
            continue
        records.append(record)

    LOGGER.debug(
        "Extracted page | containers=%s | records=%s | skipped=%s",
        total,
        len(records),
        skipped,
    )
    return records
