"""Feed ingestion MCP tools.

This module provides MCP tools for managing feed subscriptions and reading
the articles the ingestion loop has stored.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

import logging
from typing import Any, Dict

from mcp.server.fastmcp import Context

from feed_ingest.config import get_config
from feed_ingest.errors import DuplicateFeedError
from feed_ingest.ingestion.worker import run_cycle
from feed_ingest.models.schemas import Article, Feed
from feed_ingest.storage import database

logger = logging.getLogger(__name__)


def _feed_dict(feed: Feed) -> Dict[str, Any]:
    return {
        "id": feed.id,
        "url": feed.url,
        "title": feed.title,
        "description": feed.description,
        "active": feed.active,
    }


def _article_dict(article: Article) -> Dict[str, Any]:
    return {
        "id": article.id,
        "feed_id": article.feed_id,
        "url": article.url,
        "title": article.title,
        "content": article.content,
        "published": article.published.isoformat(),
        "read": article.read,
    }


async def subscribe_feed(
    url: str,
    title: str,
    description: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Subscribe to an RSS feed so the ingestion loop starts polling it.

    Args:
        url: RSS feed URL (must be unique across subscriptions)
        title: Display title for the feed
        description: Optional description (empty string for none)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: object with id, url, title, description, active
        - error: string if success is False
    """
    logger.info(f"subscribe_feed called: url={url}")

    if not url.startswith(("http://", "https://")):
        url = "https://" + url

    db = await database.get_database()
    try:
        feed = await db.subscribe_feed(url=url, title=title, description=description or None)
    except DuplicateFeedError as e:
        return {"success": False, "error": str(e)}

    return {"success": True, "feed": _feed_dict(feed)}


async def unsubscribe_feed(feed_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Remove a feed subscription and all of its stored articles.

    Args:
        feed_id: ID of the feed (from list_feeds response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - message: confirmation string if successful
        - error: string if feed not found
    """
    logger.info(f"unsubscribe_feed called: feed_id={feed_id}")

    db = await database.get_database()
    if await db.unsubscribe_feed(feed_id):
        return {"success": True, "message": f"Unsubscribed from feed {feed_id}"}

    return {"success": False, "error": f"Feed {feed_id} not found"}


async def list_feeds(ctx: Context = None) -> Dict[str, Any]:
    """List all subscribed feeds, including inactive ones.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of feeds
        - feeds: list of feed objects with id, url, title, description, active
    """
    logger.info("list_feeds called")

    db = await database.get_database()
    feeds = await db.list_feeds()

    return {
        "success": True,
        "count": len(feeds),
        "feeds": [_feed_dict(f) for f in feeds],
    }


async def set_feed_active(feed_id: str, active: bool, ctx: Context = None) -> Dict[str, Any]:
    """Pause or resume polling of a feed without deleting its articles.

    Args:
        feed_id: ID of the feed
        active: True to poll the feed, False to stop polling it
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - feed: updated feed object
        - error: string if feed not found
    """
    logger.info(f"set_feed_active called: feed_id={feed_id}, active={active}")

    db = await database.get_database()
    feed = await db.set_feed_active(feed_id, active)

    if feed is None:
        return {"success": False, "error": f"Feed {feed_id} not found"}

    return {"success": True, "feed": _feed_dict(feed)}


async def list_articles(
    feed_id: str = "",
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
    ctx: Context = None,
) -> Dict[str, Any]:
    """List stored articles, newest first.

    Args:
        feed_id: Only articles from this feed (empty string for all feeds)
        unread_only: Exclude articles already marked read
        limit: Maximum number of articles to return (default: 50)
        offset: Number of articles to skip, for paging (default: 0)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of articles returned
        - articles: list of article objects
    """
    logger.info(
        f"list_articles called: feed_id={feed_id}, unread_only={unread_only}, "
        f"limit={limit}, offset={offset}"
    )

    if limit <= 0 or offset < 0:
        return {"success": False, "error": "limit must be positive and offset non-negative"}

    db = await database.get_database()
    articles = await db.list_articles(
        feed_id=feed_id or None,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )

    return {
        "success": True,
        "count": len(articles),
        "articles": [_article_dict(a) for a in articles],
    }


async def get_article(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Get a single article by ID.

    Args:
        article_id: ID of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)
    """
    logger.info(f"get_article called: article_id={article_id}")

    db = await database.get_database()
    article = await db.get_article(article_id)

    if article is None:
        return {"success": False, "error": f"Article {article_id} not found"}

    return {"success": True, "article": _article_dict(article)}


async def mark_article_read(article_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Mark a specific article as read.

    Args:
        article_id: ID of the article (from list_articles response)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - article: object with id, title, url, read (if found)
        - error: string if article not found
    """
    logger.info(f"mark_article_read called: article_id={article_id}")

    db = await database.get_database()
    article = await db.mark_article_read(article_id)

    if article is None:
        return {"success": False, "error": f"Article {article_id} not found"}

    return {
        "success": True,
        "article": {
            "id": article.id,
            "title": article.title,
            "url": article.url,
            "read": article.read,
        },
    }


async def ingest_now(ctx: Context = None) -> Dict[str, Any]:
    """Run one ingestion cycle immediately instead of waiting for the schedule.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool (False only if feeds could not be listed)
        - feeds_processed: number of feeds attempted
        - total_new_articles: articles added across all feeds
        - aborted: whether the cycle stopped early on a fetch failure
        - results: per-feed results with feed_id, url, new_articles, error
    """
    logger.info("ingest_now called")

    db = await database.get_database()
    report = await run_cycle(db, get_config())

    if report.listing_error:
        return {"success": False, "error": report.listing_error}

    return {
        "success": True,
        "feeds_processed": len(report.outcomes),
        "total_new_articles": report.articles_inserted,
        "aborted": report.aborted,
        "results": [
            {
                "feed_id": o.feed_id,
                "url": o.feed_url,
                "articles_seen": o.articles_seen,
                "new_articles": o.articles_inserted,
                "write_failures": o.write_failures,
                "error": o.error,
            }
            for o in report.outcomes
        ],
    }


# List of feed tools for registration
feed_tools = [
    subscribe_feed,
    unsubscribe_feed,
    list_feeds,
    set_feed_active,
    list_articles,
    get_article,
    mark_article_read,
    ingest_now,
]
