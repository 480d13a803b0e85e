"""Database storage for feed_ingest.

This module provides async SQLite operations for feeds and articles on top of
a shared ConnectionPool. The unique constraint on articles.url is the only
guard against duplicate articles; nothing here keeps an in-memory record of
seen URLs.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import aiosqlite

from feed_ingest.config import get_config
from feed_ingest.errors import (
    DuplicateFeedError,
    ListFailure,
    WriteConflict,
    WriteFailure,
)
from feed_ingest.models.schemas import Article, Feed, ParsedArticle
from feed_ingest.storage.pool import ConnectionPool

logger = logging.getLogger(__name__)


def _to_db_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_db_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_feed(row: aiosqlite.Row) -> Feed:
    return Feed(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        description=row["description"],
        active=bool(row["active"]),
    )


def _row_to_article(row: aiosqlite.Row) -> Article:
    return Article(
        id=row["id"],
        feed_id=row["feed_id"],
        url=row["url"],
        title=row["title"],
        content=row["content"],
        published=_from_db_timestamp(row["published"]),
        read=bool(row["read"]),
    )


class Database:
    """Feed and article storage backed by a connection pool."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    async def init_database(self) -> None:
        """Initialize database tables if they don't exist."""
        async with self.pool.connection() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS feeds (
                    id TEXT PRIMARY KEY,
                    url TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    description TEXT,
                    active BOOLEAN NOT NULL DEFAULT 1
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS articles (
                    id TEXT PRIMARY KEY,
                    feed_id TEXT NOT NULL,
                    url TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    published TIMESTAMP NOT NULL,
                    read BOOLEAN NOT NULL DEFAULT 0,
                    FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE
                )
            """)

            # Create indexes for faster lookups
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_articles_feed_id ON articles(feed_id)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_articles_read ON articles(read)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_feeds_active ON feeds(active)
            """)

            await db.commit()

    # Ingestion interface

    async def list_active_feeds(self) -> List[Feed]:
        """List feeds that should be polled, in subscription order.

        Raises:
            ListFailure: If the store cannot be queried
        """
        try:
            async with self.pool.connection() as db:
                cursor = await db.execute(
                    "SELECT * FROM feeds WHERE active = 1 ORDER BY rowid"
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise ListFailure(f"Failed to list active feeds: {e}") from e

        return [_row_to_feed(row) for row in rows]

    async def insert_article_if_absent(self, article: ParsedArticle) -> bool:
        """Insert an article unless one with the same URL already exists.

        Args:
            article: Normalized article to store

        Returns:
            True if a new row was written, False if the URL was already present

        Raises:
            WriteFailure: If the write failed for any reason other than a
                duplicate URL
        """
        try:
            return await self._insert_article(article)
        except WriteConflict:
            logger.debug(f"Article already stored: {article.url}")
            return False

    async def _insert_article(self, article: ParsedArticle) -> bool:
        try:
            async with self.pool.connection() as db:
                cursor = await db.execute(
                    """
                    INSERT INTO articles (id, feed_id, url, title, content, published, read)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(url) DO NOTHING
                    """,
                    (
                        str(uuid.uuid4()),
                        article.feed_id,
                        article.url,
                        article.title,
                        article.content,
                        _to_db_timestamp(article.published),
                        article.read,
                    ),
                )
                await db.commit()
                return cursor.rowcount > 0
        except aiosqlite.IntegrityError as e:
            # url conflicts normally stop at ON CONFLICT; other constraint
            # failures (e.g. a feed deleted mid-cycle) are real write errors
            if "UNIQUE" in str(e) and "articles.url" in str(e):
                raise WriteConflict(str(e)) from e
            raise WriteFailure(f"Failed to store article {article.url}: {e}") from e
        except aiosqlite.Error as e:
            raise WriteFailure(f"Failed to store article {article.url}: {e}") from e

    # Subscription operations

    async def subscribe_feed(
        self,
        url: str,
        title: str,
        description: Optional[str] = None,
    ) -> Feed:
        """Subscribe to a new feed.

        Args:
            url: Feed URL (must be unique)
            title: Display title
            description: Optional description

        Returns:
            The created Feed

        Raises:
            DuplicateFeedError: If a feed with this URL already exists
        """
        feed = Feed(
            id=str(uuid.uuid4()),
            url=url,
            title=title,
            description=description,
            active=True,
        )

        try:
            async with self.pool.connection() as db:
                await db.execute(
                    """
                    INSERT INTO feeds (id, url, title, description, active)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (feed.id, feed.url, feed.title, feed.description, feed.active),
                )
                await db.commit()
        except aiosqlite.IntegrityError as e:
            raise DuplicateFeedError(f"Feed with URL '{url}' already exists") from e
        except aiosqlite.Error as e:
            raise WriteFailure(f"Failed to subscribe to {url}: {e}") from e

        logger.info(f"Subscribed to feed {feed.id}: {url}")
        return feed

    async def unsubscribe_feed(self, feed_id: str) -> bool:
        """Delete a feed and, by cascade, all of its articles.

        Returns:
            True if the feed existed
        """
        async with self.pool.connection() as db:
            cursor = await db.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))
            await db.commit()

        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Unsubscribed from feed {feed_id}")
        return deleted

    async def set_feed_active(self, feed_id: str, active: bool) -> Optional[Feed]:
        """Enable or disable polling for a feed.

        Returns:
            Updated Feed if found, None otherwise
        """
        async with self.pool.connection() as db:
            await db.execute(
                "UPDATE feeds SET active = ? WHERE id = ?",
                (active, feed_id),
            )
            await db.commit()

            cursor = await db.execute("SELECT * FROM feeds WHERE id = ?", (feed_id,))
            row = await cursor.fetchone()

        return _row_to_feed(row) if row is not None else None

    async def list_feeds(self) -> List[Feed]:
        """List all feeds, active or not."""
        async with self.pool.connection() as db:
            cursor = await db.execute("SELECT * FROM feeds ORDER BY rowid")
            rows = await cursor.fetchall()

        return [_row_to_feed(row) for row in rows]

    # Article read operations

    async def list_articles(
        self,
        feed_id: Optional[str] = None,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Article]:
        """List articles with optional filters.

        Args:
            feed_id: Only articles of this feed
            unread_only: Exclude articles already marked read
            limit: Maximum number of articles to return
            offset: Number of articles to skip

        Returns:
            List of Article objects, newest first
        """
        query = "SELECT * FROM articles WHERE 1=1"
        params: List = []

        if feed_id:
            query += " AND feed_id = ?"
            params.append(feed_id)

        if unread_only:
            query += " AND read = 0"

        query += " ORDER BY published DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self.pool.connection() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()

        return [_row_to_article(row) for row in rows]

    async def get_article(self, article_id: str) -> Optional[Article]:
        """Get an article by id."""
        async with self.pool.connection() as db:
            cursor = await db.execute("SELECT * FROM articles WHERE id = ?", (article_id,))
            row = await cursor.fetchone()

        return _row_to_article(row) if row is not None else None

    async def mark_article_read(self, article_id: str) -> Optional[Article]:
        """Mark an article as read.

        Returns:
            Updated Article if found, None otherwise
        """
        async with self.pool.connection() as db:
            await db.execute(
                "UPDATE articles SET read = 1 WHERE id = ?",
                (article_id,),
            )
            await db.commit()

            cursor = await db.execute("SELECT * FROM articles WHERE id = ?", (article_id,))
            row = await cursor.fetchone()

        return _row_to_article(row) if row is not None else None


async def open_database(db_path, pool_size: int = 5) -> Database:
    """Open a pool on db_path and make sure the schema exists."""
    pool = ConnectionPool(db_path, size=pool_size)
    await pool.open()
    database = Database(pool)
    try:
        await database.init_database()
    except BaseException:
        await pool.close()
        raise
    return database


# Singleton database shared by the server and the ingestion loop
_database: Optional[Database] = None


async def get_database() -> Database:
    """Get or create the process-wide database.

    The pool location and size come from the server configuration.
    """
    global _database

    if _database is None:
        config = get_config()
        _database = await open_database(config.db_path, config.pool_size)

    return _database


async def close_database() -> None:
    """Close the process-wide database."""
    global _database

    if _database is not None:
        await _database.pool.close()
        _database = None
