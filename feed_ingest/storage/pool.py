"""Bounded pool of aiosqlite connections.

The ingestion loop and the tool handlers share one pool, so neither can hold
more than `size` connections at once and both wait fairly for a free one.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional, Union

import aiosqlite

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


class ConnectionPool:
    """Fixed-size pool of SQLite connections."""

    def __init__(self, db_path: Union[str, Path], size: int = 5):
        if size < 1:
            raise ValueError(f"Pool size must be positive, got {size}")
        self.db_path = Path(db_path)
        self.size = size
        self._connections: List[aiosqlite.Connection] = []
        self._idle: Optional[asyncio.Queue] = None

    @property
    def is_open(self) -> bool:
        return self._idle is not None

    async def open(self) -> None:
        """Open all connections in the pool."""
        if self.is_open:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        idle: asyncio.Queue = asyncio.Queue(maxsize=self.size)

        try:
            for _ in range(self.size):
                conn = await aiosqlite.connect(self.db_path, timeout=BUSY_TIMEOUT_MS / 1000)
                self._connections.append(conn)
                conn.row_factory = aiosqlite.Row
                await conn.execute("PRAGMA foreign_keys = ON")
                await conn.execute("PRAGMA journal_mode = WAL")
                await conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
                idle.put_nowait(conn)
        except BaseException:
            await self._close_all()
            raise

        self._idle = idle
        logger.debug(f"Opened {self.size} connections to {self.db_path}")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Check out a connection, waiting if all are in use."""
        if self._idle is None:
            raise RuntimeError("Connection pool is not open")

        idle = self._idle
        conn = await idle.get()
        try:
            yield conn
        finally:
            try:
                if conn.in_transaction:
                    await conn.rollback()
            finally:
                idle.put_nowait(conn)

    async def close(self) -> None:
        """Close every connection in the pool."""
        self._idle = None
        await self._close_all()

    async def _close_all(self) -> None:
        connections, self._connections = self._connections, []
        for conn in connections:
            await conn.close()
