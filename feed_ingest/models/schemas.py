"""Data models for feed_ingest.

This module defines the core data structures for feeds and articles.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Feed:
    """Represents a subscribed feed source."""

    id: str
    url: str
    title: str
    description: Optional[str]
    active: bool = True


@dataclass
class ParsedArticle:
    """An article normalized from a feed entry, not yet persisted."""

    feed_id: str
    url: str
    title: str
    content: str
    published: datetime
    read: bool = False


@dataclass
class Article:
    """Represents a persisted article."""

    id: str
    feed_id: str
    url: str
    title: str
    content: str
    published: datetime
    read: bool
