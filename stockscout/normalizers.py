"""Utility helpers for normalising scraped text values."""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_SEGMENT_SPLIT = re.compile(r"\s*(?:\||\n)\s*")
_PICKUP = re.compile(r"\bpick\s*-?\s*up\b", re.I)
_PICKUP_NEGATED = re.compile(r"unavailable|not\s+available|sold\s+out|no\s+longer", re.I)


def collapse_whitespace(value: str | None) -> str:
    """Return *value* with runs of whitespace folded into single spaces."""

    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def normalize_availability(value: str | None) -> str:
    """Join fulfillment lines into a single ``a | b`` string."""

    if not value:
        return ""
    segments = [collapse_whitespace(part) for part in _SEGMENT_SPLIT.split(value)]
    return " | ".join(segment for segment in segments if segment)


def is_pickup_available(value: str | None) -> bool:
    """Return True when any fulfillment line offers in-store pickup.

    A line such as ``Pickup: Unavailable nearby`` mentions pickup but is
    negated, so it does not count.
    """

    for segment in _SEGMENT_SPLIT.split(value or ""):
        if _PICKUP.search(segment) and not _PICKUP_NEGATED.search(segment):
            return True
    return False


__all__ = ["collapse_whitespace", "is_pickup_available", "normalize_availability"]
