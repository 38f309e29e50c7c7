"""Error taxonomy shared by the pipeline stages and the HTTP layer."""
from __future__ import annotations

from enum import Enum


class SearchError(Exception):
    """Base class for errors the search pipeline raises on purpose."""


class InvalidQueryError(SearchError):
    def __init__(self, message: str = "Search query is required") -> None:
        super().__init__(message)


class ProviderErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIALS = "invalid_credentials"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ProviderError(SearchError):
    """A single upstream call failed; recovered inside the retriever."""

    def __init__(self, kind: ProviderErrorKind, source: str = "", message: str = "") -> None:
        self.kind = kind
        self.source = source
        self.message = message or kind.value
        super().__init__(f"{source or 'provider'}: {kind.value}: {self.message}")

    @property
    def exhausts_provider(self) -> bool:
        """Quota and credential failures will not succeed on a retry in the same request."""
        return self.kind in (ProviderErrorKind.RATE_LIMITED, ProviderErrorKind.INVALID_CREDENTIALS)


class AllSourcesFailedError(SearchError):
    def __init__(self, message: str = "No source returned any candidates") -> None:
        super().__init__(message)


class FilterExhaustionWarning(UserWarning):
    """Re-filtering would have emptied a non-empty list, so the unfiltered list is served.

    Emitted with :func:`warnings.warn`; the entry points route it into logging
    with :func:`logging.captureWarnings`.
    """
