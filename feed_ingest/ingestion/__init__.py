"""Scheduled feed ingestion for feed_ingest."""

from .worker import CycleReport, FeedOutcome, ingest_feed, run_cycle, run_forever

__all__ = [
    "CycleReport",
    "FeedOutcome",
    "ingest_feed",
    "run_cycle",
    "run_forever",
]
