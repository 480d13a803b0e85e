"""feed_ingest - scheduled RSS ingestion with an MCP read surface."""

__version__ = "0.1.0"
