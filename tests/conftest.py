from __future__ import annotations

import base64
import json
import time
from typing import Any, Dict, List, Optional

import pytest

from identity_sync.cache.invalidation import InMemoryPageCache
from identity_sync.clients.metadata import InMemoryMetadataClient
from identity_sync.config import Settings
from identity_sync.context import AppContext, build_context
from identity_sync.db.connector import DatabaseConnector
from identity_sync.db.memory import InMemoryDBManager
from identity_sync.services.user_service import UserService
from identity_sync.webhooks.verifier import sign_payload


WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"identity-sync-test-signing-key").decode("ascii")


def memory_connector(db: Optional[InMemoryDBManager] = None) -> DatabaseConnector:
    db = db or InMemoryDBManager()

    async def factory() -> InMemoryDBManager:
        return db

    return DatabaseConnector(factory)


def user_payload(
    event_type: str,
    external_id: Optional[str] = "user_2abc",
    emails: Optional[List[str]] = None,
    **fields: Any,
) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(fields)
    if external_id is not None:
        data["id"] = external_id
    if event_type == "user.created":
        addresses = ["ada@example.com"] if emails is None else emails
        data["email_addresses"] = [
            {"id": f"idn_{i}", "email_address": address} for i, address in enumerate(addresses)
        ]
    if event_type == "user.deleted":
        data.setdefault("deleted", True)
    return {"type": event_type, "object": "event", "data": data}


def signed_headers(
    body: bytes,
    secret: str = WEBHOOK_SECRET,
    message_id: str = "msg_2abc",
    timestamp: Optional[int] = None,
) -> Dict[str, str]:
    ts = int(time.time()) if timestamp is None else timestamp
    return {
        "svix-id": message_id,
        "svix-timestamp": str(ts),
        "svix-signature": sign_payload(secret, message_id, ts, body),
        "content-type": "application/json",
    }


def encode(payload: Dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def db() -> InMemoryDBManager:
    return InMemoryDBManager()


@pytest.fixture
def pages() -> InMemoryPageCache:
    return InMemoryPageCache()


@pytest.fixture
def user_service(db, pages) -> UserService:
    return UserService(connector=memory_connector(db), invalidator=pages)


@pytest.fixture
def metadata_client() -> InMemoryMetadataClient:
    return InMemoryMetadataClient()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        WEBHOOK_SECRET=WEBHOOK_SECRET,
        LEDGER_FILE_PATH=tmp_path / "ledger.log",
    )


@pytest.fixture
def app_context(settings, db, pages, metadata_client) -> AppContext:
    return build_context(
        settings,
        connector=memory_connector(db),
        metadata=metadata_client,
        pages=pages,
    )
