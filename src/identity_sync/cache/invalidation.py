from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional


logger = logging.getLogger(__name__)


class PageInvalidator(ABC):
    """Drops cached renderings of a site path so the next request rebuilds them."""

    @abstractmethod
    async def invalidate(self, path: str) -> None:
        ...


class InMemoryPageCache(PageInvalidator):
    """
    Rendered pages keyed by site path.
    Intended for tests and single-process deployments.
    """

    def __init__(self) -> None:
        self._pages: Dict[str, str] = {}

    def get(self, path: str) -> Optional[str]:
        return self._pages.get(path)

    def put(self, path: str, body: str) -> None:
        self._pages[path] = body

    async def invalidate(self, path: str) -> None:
        self._pages.pop(path, None)
        logger.debug("Invalidated cached page %s", path)
