"""Feed normalizer service.

This module turns the entries of a parsed feed into ParsedArticle records.
Missing fields get neutral defaults and an unreadable publication date falls
back to a single timestamp shared by the whole document.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Mapping, Optional

from feed_ingest.models.schemas import Feed, ParsedArticle


def parse_published(value: Optional[str]) -> Optional[datetime]:
    """Parse a free-text publication date into a UTC datetime.

    Accepts RFC 2822 (the RSS pubDate format) and ISO 8601. Naive values are
    taken to be UTC.

    Args:
        value: Raw date string from the feed entry

    Returns:
        datetime in UTC if parsed successfully, None otherwise
    """
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    parsed = None

    # Try RFC 2822 format (common in RSS)
    try:
        parsed = parsedate_to_datetime(value)
    except (ValueError, TypeError, IndexError, OverflowError):
        pass

    # Try ISO format
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)

    # Offsets near datetime.min/max push the UTC value out of range
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None


def _entry_content(entry: Mapping[str, Any]) -> str:
    for content in entry.get("content") or []:
        value = content.get("value")
        if value:
            return value
    return entry.get("summary") or ""


def normalize_feed(
    feed: Feed,
    document: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> List[ParsedArticle]:
    """Convert every entry of a feed document into a ParsedArticle.

    Never raises for a malformed entry; bad or missing values are replaced
    with defaults.

    Args:
        feed: The feed the document was fetched for
        document: Parsed feed (as returned by fetch_feed)
        now: Fallback timestamp; defaults to the current UTC time

    Returns:
        One ParsedArticle per entry, in document order
    """
    if now is None:
        fallback = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        fallback = now.replace(tzinfo=timezone.utc)
    else:
        fallback = now.astimezone(timezone.utc)

    articles = []
    for entry in document.get("entries") or []:
        published = parse_published(entry.get("published"))

        articles.append(ParsedArticle(
            feed_id=feed.id,
            url=(entry.get("link") or "").strip(),
            title=(entry.get("title") or "").strip(),
            content=_entry_content(entry),
            published=published if published is not None else fallback,
            read=False,
        ))

    return articles
