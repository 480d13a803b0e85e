"""Background ingestion loop.

Every cycle lists the active feeds, fetches and normalizes each one, and
stores the resulting articles with duplicate-safe inserts. The loop sleeps
for a fixed interval after each cycle finishes, so a slow cycle delays the
next one instead of overlapping it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from feed_ingest.config import ServerConfig
from feed_ingest.errors import FetchError, StorageError
from feed_ingest.models.schemas import Feed
from feed_ingest.services.fetcher import fetch_feed
from feed_ingest.services.normalizer import normalize_feed
from feed_ingest.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass
class FeedOutcome:
    """Result of ingesting a single feed within a cycle."""

    feed_id: str
    feed_url: str
    fetched: bool
    articles_seen: int = 0
    articles_inserted: int = 0
    write_failures: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.fetched and self.error is None


@dataclass
class CycleReport:
    """Per-feed outcomes of one pass over all active feeds."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: List[FeedOutcome] = field(default_factory=list)
    listing_error: Optional[str] = None
    aborted: bool = False

    @property
    def articles_inserted(self) -> int:
        return sum(o.articles_inserted for o in self.outcomes)

    @property
    def failed_feeds(self) -> List[FeedOutcome]:
        return [o for o in self.outcomes if not o.ok]


async def ingest_feed(
    db: Database,
    feed: Feed,
    config: ServerConfig,
    now: Optional[datetime] = None,
) -> FeedOutcome:
    """Fetch, normalize and store the articles of one feed.

    Fetch errors are recorded in the returned outcome rather than raised.
    A failed article write is logged and skipped.
    """
    try:
        document = await fetch_feed(
            feed.url,
            timeout=config.fetch_timeout_seconds,
            user_agent=config.user_agent,
        )
    except FetchError as e:
        logger.warning(f"Fetch failed for feed {feed.id}: {e}")
        return FeedOutcome(feed_id=feed.id, feed_url=feed.url, fetched=False, error=str(e))

    articles = normalize_feed(feed, document, now=now)
    outcome = FeedOutcome(
        feed_id=feed.id,
        feed_url=feed.url,
        fetched=True,
        articles_seen=len(articles),
    )

    for article in articles:
        try:
            if await db.insert_article_if_absent(article):
                outcome.articles_inserted += 1
        except StorageError as e:
            outcome.write_failures += 1
            logger.error(f"Insert failed for {article.url or '<no link>'}: {e}")

    logger.debug(
        f"Feed {feed.id}: {outcome.articles_inserted} new of {outcome.articles_seen} articles"
    )
    return outcome


async def run_cycle(
    db: Database,
    config: ServerConfig,
    now: Optional[datetime] = None,
) -> CycleReport:
    """Run one pass over all active feeds.

    By default each feed is isolated from the others' failures. With
    config.abort_cycle_on_fetch_error set, the first fetch failure ends the
    cycle and the remaining feeds wait for the next one.

    Undated entries of every feed in the cycle share one fallback instant.
    """
    report = CycleReport(started_at=datetime.now(timezone.utc))
    if now is None:
        now = report.started_at

    try:
        feeds = await db.list_active_feeds()
    except StorageError as e:
        logger.error(f"Could not list active feeds, skipping cycle: {e}")
        report.listing_error = str(e)
        report.finished_at = datetime.now(timezone.utc)
        return report

    for feed in feeds:
        try:
            outcome = await ingest_feed(db, feed, config, now=now)
        except Exception as e:
            logger.exception(f"Unexpected error ingesting feed {feed.id}")
            outcome = FeedOutcome(feed_id=feed.id, feed_url=feed.url, fetched=False, error=str(e))
        report.outcomes.append(outcome)

        if not outcome.fetched and config.abort_cycle_on_fetch_error:
            skipped = len(feeds) - len(report.outcomes)
            logger.error(f"Aborting cycle after fetch failure; {skipped} feeds skipped")
            report.aborted = True
            break

    report.finished_at = datetime.now(timezone.utc)
    logger.info(
        f"Cycle complete: {len(report.outcomes)}/{len(feeds)} feeds processed, "
        f"{len(report.failed_feeds)} failed, {report.articles_inserted} new articles"
    )
    return report


async def run_forever(
    db: Database,
    config: ServerConfig,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run ingestion cycles until stop_event is set.

    Nothing raised inside a cycle stops the loop.
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info(f"Ingestion loop started, interval {config.fetch_interval_seconds}s")

    while not stop_event.is_set():
        try:
            await run_cycle(db, config)
        except Exception:
            logger.exception("Unexpected error during ingestion cycle")

        logger.info(f"Ingestion sleeping for {config.fetch_interval_seconds}s")
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=config.fetch_interval_seconds)
        except asyncio.TimeoutError:
            pass

    logger.info("Ingestion loop stopped")
