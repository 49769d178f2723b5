from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from ..config import get_settings
from ..context import AppContext, build_context
from .router import router


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Application factory.

    The context (DB connector, page cache, provider client) lives as long
    as the app and is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.context.aclose()

    app = FastAPI(title="identity-sync", lifespan=lifespan)
    app.state.context = context or build_context(get_settings())
    app.include_router(router)
    return app
