"""Custom exception types for deal-scout."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class _ContextError(Exception):
    """Base error carrying the URL and page number it relates to."""

    default_message = "Scrape failed."

    def __init__(
        self,
        message: str | None = None,
        *,
        url: Optional[str] = None,
        page: Optional[int] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.page = page
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.page is not None:
            context_parts.append(f"page={self.page}")
        if self.url:
            context_parts.append(f"url={self.url}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class ConfigurationError(_ContextError):
    """Raised when required settings (such as the render API key) are missing."""

    default_message = "Invalid configuration."


class FetchFailure(str, Enum):
    """Classification of a failed page fetch."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    TOO_SHORT = "too_short"
    BLOCKED = "blocked"


class FetchError(_ContextError):
    """Raised when the rendering service does not return usable markup."""

    default_message = "Failed to fetch page."

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: FetchFailure = FetchFailure.NETWORK,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        page: Optional[int] = None,
    ) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(message, url=url, page=page)


class ScrapeCancelled(_ContextError):
    """Raised at a suspension point once a run is cancelled or past its deadline."""

    default_message = "Scrape cancelled."


__all__ = ["ConfigurationError", "FetchError", "FetchFailure", "ScrapeCancelled"]
