"""MCP tools for feed_ingest."""
