"""Services for feed_ingest."""

from .fetcher import fetch_feed
from .normalizer import normalize_feed, parse_published

__all__ = [
    "fetch_feed",
    "normalize_feed",
    "parse_published",
]
