"""Data models for feed_ingest."""

from .schemas import Article, Feed, ParsedArticle

__all__ = ["Article", "Feed", "ParsedArticle"]
