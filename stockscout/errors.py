"""Custom exception types for stockscout."""

from __future__ import annotations

from typing import Iterable, Optional


class _ContextError(Exception):
    """Base class rendering keyword context after the message."""

    default_message = "Scrape failed."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        store_key: Optional[str] = None,
        selector: Optional[str] = None,
        candidates: Optional[Iterable[str]] = None,
        url: Optional[str] = None,
        category: Optional[str] = None,
        page: Optional[int] = None,
    ) -> None:
        self.message = message or self.default_message
        self.store_key = store_key
        self.selector = selector
        self.candidates = list(candidates) if candidates is not None else None
        self.url = url
        self.category = category
        self.page = page
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.store_key:
            context_parts.append(f"store={self.store_key}")
        if self.category:
            context_parts.append(f"category={self.category}")
        if self.page is not None:
            context_parts.append(f"page={self.page}")
        if self.selector:
            context_parts.append(f"selector={self.selector}")
        if self.candidates is not None:
            context_parts.append(f"candidates={self.candidates}")
        if self.url:
            context_parts.append(f"url={self.url}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class StoreContextError(_ContextError):
    """Raised when the store location cannot be set."""

    default_message = "Unable to set store context."


class LocationControlNotFound(StoreContextError):
    """Raised when a store/location control never appears after polling."""

    default_message = "Location control not found."


class NoLocationResults(StoreContextError):
    """Raised when no location search candidate produced store results."""

    default_message = "No store results for any location candidate."


class PageLoadError(_ContextError):
    """Raised when a page fails to load or render correctly."""

    default_message = "Failed to load page."


class ProductGridNotFound(PageLoadError):
    """Raised when the category results grid never renders."""

    default_message = "Product grid did not render."


class ConfigurationError(Exception):
    """Raised when config, store directory or category lookups are invalid."""
