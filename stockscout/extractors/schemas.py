"""Data models and parsers for extracted records."""

from __future__ import annotations

import re
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, field_validator

TAP_FOR_PRICE = "Tap for price"

_TAP_FOR_PRICE_RE = re.compile(r"tap\s+for\s+price", re.I)
_COMPARE_CLAUSE = re.compile(
    r"\b(?:comp\.?\s*value|was|reg\.?|regular\s+price)\s*:?\s*\$?\s*\d[\d,]*(?:\.\d+)?",
    re.I,
)
_CURRENCY_AMOUNT = re.compile(r"\$\s*(\d{1,3}(?:,\d{3})+|\d+)(\.\d{1,2})?")
_BARE_AMOUNT = re.compile(r"(?<![\d.])(\d{1,3}(?:,\d{3})+|\d+)(\.\d{1,2})?")
_SKU_PATTERN = re.compile(r"[?&]skuId=(\d+)", re.I)


def parse_price(text: str | None) -> str:
    """Return the leading price in *text* as a currency-stripped string.

    Compare-value clauses (``Comp. Value: $299.99``, ``Was $10``) are removed
    first, then the first ``$`` amount is taken; without one the first bare
    number is used. Thousands separators are dropped, so ``"$1,249.99"``
    becomes ``"1249.99"``. A ``Tap for price`` placeholder returns
    :data:`TAP_FOR_PRICE` and text without any amount returns ``""``.
    """

    if not text:
        return ""

    if _TAP_FOR_PRICE_RE.search(text) and not _CURRENCY_AMOUNT.search(text):
        return TAP_FOR_PRICE

    stripped = _COMPARE_CLAUSE.sub(" ", text)
    match = _CURRENCY_AMOUNT.search(stripped) or _BARE_AMOUNT.search(stripped)
    if not match:
        return ""

    whole, cents = match.groups()
    return whole.replace(",", "") + (cents or "")


def is_price_placeholder(value: str | None) -> bool:
    """Return True when *value* still needs the interactive price reveal."""

    return not value or value == TAP_FOR_PRICE


def extract_sku(url: str | None) -> str:
    """Return the digits of a ``skuId=`` query parameter, or ``""``."""

    if not url:
        return ""
    match = _SKU_PATTERN.search(url)
    return match.group(1) if match else ""


class StoreLocation(BaseModel):
    """Static directory entry describing one physical store."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    store_id: str
    zip: str = ""
    city: str = ""
    city_code: str = ""
    state: str = ""
    state_code: str = ""
    display_location: str = ""

    @field_validator("store_id", "zip", "city", "city_code", "state", "state_code", "display_location", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        if value is None:
            return ""
        return str(value).strip()

    def search_attempts(self) -> list[str]:
        """Location search candidates in priority order: city, state, ZIP."""

        ordered = (self.city_code, self.state_code, self.zip)
        attempts: list[str] = []
        for candidate in ordered:
            if candidate and candidate not in attempts:
                attempts.append(candidate)
        return attempts


class ProductRecord(BaseModel):
    """One in-stock product row; column order matches the CSV export."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    item_name: str = ""
    price: str = ""
    merchant_supplied_id: str = ""
    brand: str | None = None
    category: str
    image_url: str | None = None

    def dedupe_key(self) -> tuple[str, ...]:
        if self.merchant_supplied_id:
            return ("sku", self.merchant_supplied_id)
        return ("name", self.item_name, self.price)


@dataclass
class PageCursor:
    """Run-scoped page counter bounded by an optional limit and a hard ceiling."""

    max_page_limit: int | None = None
    hard_page_ceiling: int = 50
    current_page_index: int = 1

    def __post_init__(self) -> None:
        if self.max_page_limit is not None and self.max_page_limit < 1:
            raise ValueError("max_page_limit must be a positive integer")
        if self.hard_page_ceiling < 1:
            raise ValueError("hard_page_ceiling must be a positive integer")

    @property
    def effective_limit(self) -> int:
        if self.max_page_limit is None:
            return self.hard_page_ceiling
        return min(self.max_page_limit, self.hard_page_ceiling)

    def limit_reached(self) -> bool:
        return self.current_page_index >= self.effective_limit

    def advance(self) -> int:
        self.current_page_index += 1
        return self.current_page_index
