"""Exception types raised by feed_ingest."""

from typing import Optional


class FeedIngestError(Exception):
    """Base class for all feed_ingest errors."""


class FetchError(FeedIngestError):
    """A feed could not be retrieved or parsed."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class InvalidSourceError(FetchError):
    """The feed URL is malformed or uses an unsupported scheme."""


class NetworkError(FetchError):
    """Connection failure, timeout or non-2xx response."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(url, message)
        self.status_code = status_code


class ParseFailureError(FetchError):
    """The response body is not a valid RSS document."""


class StorageError(FeedIngestError):
    """The durable store rejected an operation."""


class ListFailure(StorageError):
    """Listing feeds failed."""


class WriteFailure(StorageError):
    """A write to the store failed."""


class WriteConflict(WriteFailure):
    """A write violated a uniqueness constraint.

    For idempotent inserts this means the row already exists and is not a
    real failure.
    """


class DuplicateFeedError(StorageError):
    """A feed with the same URL is already subscribed."""
