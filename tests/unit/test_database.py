"""Unit tests for database operations.

Tests for the storage layer using a temporary SQLite file.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from feed_ingest.errors import DuplicateFeedError, ListFailure, WriteFailure
from feed_ingest.models.schemas import ParsedArticle
from feed_ingest.storage.database import Database
from feed_ingest.storage.pool import ConnectionPool


# Mark all tests as async
pytestmark = pytest.mark.anyio

PUBLISHED = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_article(feed_id, url, published=PUBLISHED, title="Post"):
    return ParsedArticle(
        feed_id=feed_id,
        url=url,
        title=title,
        content="Body",
        published=published,
    )


async def count_articles(db):
    async with db.pool.connection() as conn:
        cursor = await conn.execute("SELECT COUNT(*) AS count FROM articles")
        row = await cursor.fetchone()
    return row["count"]


class TestDatabaseInitialization:
    """Tests for database schema initialization."""

    async def test_init_creates_tables(self, db):
        """Test that initialization creates the required tables."""
        async with db.pool.connection() as conn:
            cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = [row[0] for row in await cursor.fetchall()]

        assert "feeds" in tables
        assert "articles" in tables

    async def test_init_creates_indexes(self, db):
        """Test that initialization creates indexes."""
        async with db.pool.connection() as conn:
            cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='index'")
            indexes = [row[0] for row in await cursor.fetchall()]

        assert "idx_articles_feed_id" in indexes
        assert "idx_articles_read" in indexes
        assert "idx_feeds_active" in indexes

    async def test_init_is_idempotent(self, db):
        """Test that calling init multiple times doesn't cause errors."""
        await db.init_database()
        await db.init_database()


class TestFeedOperations:
    """Tests for subscription operations."""

    async def test_subscribe_feed(self, db):
        """Test subscribing creates an active feed with a generated id."""
        feed = await db.subscribe_feed("https://example.com/feed.xml", "Example", "About")

        assert feed.id
        assert feed.active is True
        assert feed.description == "About"
        assert await db.list_feeds() == [feed]

    async def test_subscribe_duplicate_url_raises(self, db):
        """Test that duplicate feed URLs raise DuplicateFeedError."""
        await db.subscribe_feed("https://example.com/feed.xml", "One")

        with pytest.raises(DuplicateFeedError, match="already exists"):
            await db.subscribe_feed("https://example.com/feed.xml", "Two")

    async def test_feed_ids_are_unique(self, db):
        """Test every subscription gets its own id."""
        a = await db.subscribe_feed("https://a.example.com/rss", "A")
        b = await db.subscribe_feed("https://b.example.com/rss", "B")

        assert a.id != b.id

    async def test_list_active_feeds_in_subscription_order(self, db):
        """Test active feeds are listed in the order they were added."""
        urls = [f"https://{name}.example.com/rss" for name in ("zeta", "alpha", "mid")]
        for url in urls:
            await db.subscribe_feed(url, url)

        feeds = await db.list_active_feeds()

        assert [f.url for f in feeds] == urls

    async def test_inactive_feeds_not_listed_for_ingestion(self, db):
        """Test deactivated feeds drop out of list_active_feeds only."""
        a = await db.subscribe_feed("https://a.example.com/rss", "A")
        b = await db.subscribe_feed("https://b.example.com/rss", "B")

        updated = await db.set_feed_active(a.id, False)

        assert updated.active is False
        assert [f.id for f in await db.list_active_feeds()] == [b.id]
        assert len(await db.list_feeds()) == 2

    async def test_set_feed_active_unknown(self, db):
        """Test updating a missing feed returns None."""
        assert await db.set_feed_active("missing", True) is None

    async def test_unsubscribe_cascades_articles(self, db):
        """Test removing a feed removes its articles."""
        feed = await db.subscribe_feed("https://example.com/rss", "Example")
        await db.insert_article_if_absent(make_article(feed.id, "https://example.com/1"))
        await db.insert_article_if_absent(make_article(feed.id, "https://example.com/2"))

        assert await db.unsubscribe_feed(feed.id) is True
        assert await db.list_feeds() == []
        assert await count_articles(db) == 0

    async def test_unsubscribe_unknown(self, db):
        """Test removing a missing feed reports False."""
        assert await db.unsubscribe_feed("missing") is False

    async def test_list_active_feeds_failure(self, config):
        """Test a broken store raises ListFailure."""
        pool = ConnectionPool(config.db_path, size=1)
        await pool.open()
        try:
            # Schema never created
            with pytest.raises(ListFailure):
                await Database(pool).list_active_feeds()
        finally:
            await pool.close()


class TestArticleInsert:
    """Tests for idempotent article inserts."""

    async def test_insert_new_article(self, db):
        """Test a new URL is inserted."""
        feed = await db.subscribe_feed("https://example.com/rss", "Example")

        inserted = await db.insert_article_if_absent(make_article(feed.id, "https://example.com/1"))

        assert inserted is True
        assert await count_articles(db) == 1

    async def test_insert_duplicate_url_is_noop(self, db):
        """Test inserting the same URL twice keeps one row and does not raise."""
        feed = await db.subscribe_feed("https://example.com/rss", "Example")
        article = make_article(feed.id, "https://example.com/1")

        assert await db.insert_article_if_absent(article) is True
        assert await db.insert_article_if_absent(article) is False
        assert await count_articles(db) == 1

    async def test_duplicate_url_across_feeds_is_noop(self, db):
        """Test uniqueness is global, not per feed."""
        a = await db.subscribe_feed("https://a.example.com/rss", "A")
        b = await db.subscribe_feed("https://b.example.com/rss", "B")

        await db.insert_article_if_absent(make_article(a.id, "https://shared.example.com/post"))
        inserted = await db.insert_article_if_absent(
            make_article(b.id, "https://shared.example.com/post")
        )

        assert inserted is False
        [article] = await db.list_articles()
        assert article.feed_id == a.id

    async def test_concurrent_inserts_of_same_url(self, db):
        """Test racing writers produce exactly one row."""
        feed = await db.subscribe_feed("https://example.com/rss", "Example")
        article = make_article(feed.id, "https://example.com/race")

        results = await asyncio.gather(*[db.insert_article_if_absent(article) for _ in range(6)])

        assert results.count(True) == 1
        assert await count_articles(db) == 1

    async def test_insert_unknown_feed_raises_write_failure(self, db):
        """Test a foreign key violation is a real write failure."""
        with pytest.raises(WriteFailure):
            await db.insert_article_if_absent(make_article("no-such-feed", "https://example.com/1"))

    async def test_published_roundtrip_utc(self, db):
        """Test publication timestamps come back as the same UTC instant."""
        feed = await db.subscribe_feed("https://example.com/rss", "Example")
        published = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        await db.insert_article_if_absent(
            make_article(feed.id, "https://example.com/1", published=published)
        )

        [article] = await db.list_articles()

        assert article.published == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert article.published.utcoffset() == timedelta(0)
        assert article.read is False


@pytest.fixture
async def seeded(db):
    """Two feeds: three dated articles on the first, one on the second."""
    a = await db.subscribe_feed("https://a.example.com/rss", "A")
    b = await db.subscribe_feed("https://b.example.com/rss", "B")
    for day in range(1, 4):
        await db.insert_article_if_absent(make_article(
            a.id, f"https://a.example.com/{day}", published=PUBLISHED + timedelta(days=day)
        ))
    await db.insert_article_if_absent(make_article(b.id, "https://b.example.com/1"))
    return a, b


class TestArticleReads:
    """Tests for article listing and read marking."""

    async def test_list_articles_newest_first(self, db, seeded):
        """Test articles are ordered by publication date descending."""
        articles = await db.list_articles()

        assert [a.url for a in articles] == [
            "https://a.example.com/3",
            "https://a.example.com/2",
            "https://a.example.com/1",
            "https://b.example.com/1",
        ]

    async def test_list_articles_by_feed(self, db, seeded):
        """Test filtering by feed."""
        _, b = seeded

        articles = await db.list_articles(feed_id=b.id)

        assert [a.url for a in articles] == ["https://b.example.com/1"]

    async def test_list_articles_paging(self, db, seeded):
        """Test limit and offset."""
        articles = await db.list_articles(limit=2, offset=1)

        assert [a.url for a in articles] == [
            "https://a.example.com/2",
            "https://a.example.com/1",
        ]

    async def test_mark_article_read(self, db, seeded):
        """Test marking read and the unread filter."""
        newest = (await db.list_articles(limit=1))[0]

        updated = await db.mark_article_read(newest.id)

        assert updated.read is True
        unread = await db.list_articles(unread_only=True)
        assert newest.id not in [a.id for a in unread]
        assert len(unread) == 3

    async def test_mark_article_read_unknown(self, db):
        """Test marking a missing article returns None."""
        assert await db.mark_article_read("missing") is None

    async def test_get_article(self, db, seeded):
        """Test fetching a single article by id."""
        listed = (await db.list_articles(limit=1))[0]

        assert await db.get_article(listed.id) == listed
        assert await db.get_article("missing") is None
