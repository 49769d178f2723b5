from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .cache.invalidation import InMemoryPageCache, PageInvalidator
from .clients.metadata import ClerkMetadataClient, IdentityMetadataClient, InMemoryMetadataClient
from .config import Settings
from .db.base import BaseDBManager
from .db.connector import DatabaseConnector
from .db.memory import InMemoryDBManager
from .logging.ledger_logger import LedgerLogger
from .services.reconciliation_service import MetadataReconciler
from .services.user_service import UserService
from .webhooks.dispatcher import WebhookDispatcher
from .webhooks.verifier import WebhookVerifier


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a process shares across requests, created once at startup."""

    settings: Settings
    connector: DatabaseConnector
    pages: PageInvalidator
    metadata: IdentityMetadataClient
    ledger: LedgerLogger
    users: UserService
    verifier: WebhookVerifier
    dispatcher: WebhookDispatcher
    reconciler: MetadataReconciler

    async def aclose(self) -> None:
        await self.metadata.close()
        await self.connector.close()


def _db_factory(settings: Settings):
    if settings.MONGODB_URL:
        from .db.mongo import MongoDBManager

        async def connect_mongo() -> BaseDBManager:
            return await MongoDBManager.connect(settings.MONGODB_URL, settings.MONGODB_DB_NAME)  # type: ignore[arg-type]

        return connect_mongo

    logger.warning("MONGODB_URL is not set; using the in-memory store")

    async def connect_memory() -> BaseDBManager:
        return InMemoryDBManager()

    return connect_memory


def _metadata_client(settings: Settings) -> IdentityMetadataClient:
    if settings.CLERK_SECRET_KEY:
        return ClerkMetadataClient(
            secret_key=settings.CLERK_SECRET_KEY,
            api_base_url=settings.CLERK_API_URL,
            timeout_seconds=settings.CLERK_TIMEOUT_SECONDS,
        )
    logger.warning("CLERK_SECRET_KEY is not set; metadata write-back stays in memory")
    return InMemoryMetadataClient()


def build_context(
    settings: Settings,
    connector: Optional[DatabaseConnector] = None,
    metadata: Optional[IdentityMetadataClient] = None,
    pages: Optional[PageInvalidator] = None,
) -> AppContext:
    """
    Wire the service graph from settings. Any collaborator can be passed in
    to replace the one derived from settings (tests, scripts).
    """
    connector = connector or DatabaseConnector(_db_factory(settings))
    metadata = metadata or _metadata_client(settings)
    pages = pages or InMemoryPageCache()

    ledger = LedgerLogger(connector=connector, file_path=settings.LEDGER_FILE_PATH)
    users = UserService(connector=connector, invalidator=pages)
    verifier = WebhookVerifier(
        secret=settings.WEBHOOK_SECRET,
        tolerance_seconds=settings.WEBHOOK_TOLERANCE_SECONDS,
    )
    if not verifier.is_configured:
        logger.error("WEBHOOK_SECRET is missing or not valid base64; webhook deliveries will fail")

    return AppContext(
        settings=settings,
        connector=connector,
        pages=pages,
        metadata=metadata,
        ledger=ledger,
        users=users,
        verifier=verifier,
        dispatcher=WebhookDispatcher(users=users, metadata=metadata, ledger=ledger),
        reconciler=MetadataReconciler(users=users, metadata=metadata, ledger=ledger),
    )
