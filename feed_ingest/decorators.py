"""Decorators applied to every MCP tool at registration time."""

import functools
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from feed_ingest.errors import FeedIngestError

ToolFunc = Callable[..., Awaitable[Dict[str, Any]]]


def exception_handler(func: ToolFunc) -> ToolFunc:
    """Turn exceptions escaping a tool into an error response."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            return await func(*args, **kwargs)
        except FeedIngestError as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            logging.getLogger(func.__module__).exception(f"Tool {func.__name__} failed")
            return {"success": False, "error": f"Internal error: {e}"}

    return wrapper


def tool_logger(func: ToolFunc, config: Optional[Dict[str, Any]] = None) -> ToolFunc:
    """Log each tool call with its duration."""
    logger = logging.getLogger(func.__module__)
    config = config or {}

    @functools.wraps(func)
    async def wrapper(*args, **kwargs) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                f"[{config.get('name', 'feed_ingest')}] {func.__name__} "
                f"finished in {elapsed_ms:.1f}ms"
            )

    return wrapper
