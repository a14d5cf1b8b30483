"""Exception hierarchy shared by the fetchers, extractors and pipelines."""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from storeparser.collector.fetcher import FetchResult


class StoreParserError(Exception):
    """Base class for every error raised by storeparser."""


class ConfigError(StoreParserError):
    """Settings file or proxy list is malformed."""


class EmptyPoolError(StoreParserError):
    """A proxy was requested but the pool holds no endpoints."""


class FetchError(StoreParserError):
    """Base class for HTTP retrieval failures."""


class TransportError(FetchError):
    """Connection, timeout or protocol failure below the HTTP layer."""


class NonSuccessStatusError(FetchError):
    """Server answered with a status other than 200."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"HTTP {status_code} for {url}")
        self.status_code = status_code
        self.url = url


class FetchFailedError(FetchError):
    """All attempts of a fetch call were used up without a 200 response."""

    def __init__(self, result: "FetchResult") -> None:
        super().__init__(
            f"Fetching {result.url} failed after {result.requests} request(s): {result.error}"
        )
        self.result = result


class ExtractionError(StoreParserError):
    """A single source record could not be turned into a product."""


class MissingRegionError(ExtractionError):
    """Detail page has no buy box region."""


class NoActiveColorError(ExtractionError):
    """No active variant element carries color information."""


class MissingFieldError(ExtractionError):
    """A required field is absent from the source record."""

    def __init__(self, field: str, ref: Optional[str] = None) -> None:
        message = f"missing required field '{field}'"
        if ref:
            message = f"{message} ({ref})"
        super().__init__(message)
        self.field = field


class MalformedFieldError(ExtractionError):
    """A field is present but its value cannot be parsed."""


class MalformedDocumentError(StoreParserError):
    """Listing page or API document does not have the expected shape."""
