from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .base import BaseDBManager


logger = logging.getLogger(__name__)

DBFactory = Callable[[], Awaitable[BaseDBManager]]


class DatabaseConnector:
    """
    Lazily creates the process-wide DB manager and hands it out on every call.

    The first `connect()` runs the factory; concurrent first callers wait on
    the same lock and reuse its result, so exactly one connection is made.
    """

    def __init__(self, factory: DBFactory) -> None:
        self._factory = factory
        self._db: Optional[BaseDBManager] = None
        # Created lazily so the lock binds to the running event loop
        self._lock: Optional[asyncio.Lock] = None

    @property
    def _init_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    async def connect(self) -> BaseDBManager:
        if self._db is None:
            async with self._init_lock:
                # Double-check in case another caller connected while we waited
                if self._db is None:
                    self._db = await self._factory()
                    logger.info("Database connection established (%s)", type(self._db).__name__)
        return self._db

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")
