"""Feed fetcher service.

This module retrieves a feed over HTTP and parses it into a feedparser
document. It performs exactly one request per call; retrying is left to the
ingestion loop's cadence.
"""

import logging

import feedparser
import httpx

from feed_ingest.errors import InvalidSourceError, NetworkError, ParseFailureError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "FeedIngest/1.0 (RSS Feed Ingestion)"


def _validate_url(feed_url: str) -> None:
    if not feed_url or not feed_url.strip():
        raise InvalidSourceError(feed_url, "Feed URL is empty")

    try:
        url = httpx.URL(feed_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidSourceError(feed_url, f"Malformed feed URL: {e}") from e

    if url.scheme not in ("http", "https"):
        raise InvalidSourceError(feed_url, f"Unsupported URL scheme '{url.scheme}'")
    if not url.host:
        raise InvalidSourceError(feed_url, "Feed URL has no host")


async def fetch_feed(
    feed_url: str,
    timeout: float = 30.0,
    user_agent: str = DEFAULT_USER_AGENT,
) -> feedparser.FeedParserDict:
    """Fetch and parse an RSS feed.

    Args:
        feed_url: URL of the feed
        timeout: Seconds before the request is abandoned
        user_agent: User-Agent header sent with the request

    Returns:
        The parsed feed document

    Raises:
        InvalidSourceError: If the URL is malformed
        NetworkError: On connection failure, timeout or non-2xx status
        ParseFailureError: If the body is not a valid RSS document
    """
    _validate_url(feed_url)
    logger.debug(f"Fetching feed: {feed_url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": user_agent},
    ) as client:
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                feed_url,
                f"HTTP {e.response.status_code} fetching feed",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise NetworkError(feed_url, f"Timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise NetworkError(feed_url, f"Failed to fetch feed: {e}") from e

    document = feedparser.parse(response.content)

    if document.bozo and not document.entries:
        raise ParseFailureError(
            feed_url, f"Feed parsing error: {document.get('bozo_exception')}"
        )

    version = document.get("version") or ""
    if not version.startswith("rss"):
        raise ParseFailureError(
            feed_url, f"Unsupported feed format '{version or 'unknown'}'"
        )

    return document
