from __future__ import annotations

from typing import Any, Mapping

import pytest

from identity_sync.clients.metadata import IdentityMetadataClient
from identity_sync.exceptions import MetadataWriteError
from identity_sync.models.events import parse_event
from identity_sync.models.ledger import LedgerEventType
from identity_sync.webhooks.dispatcher import WebhookDispatcher

from conftest import user_payload


class FailingMetadataClient(IdentityMetadataClient):
    def __init__(self) -> None:
        self.attempts = 0

    async def set_user_metadata(self, external_id: str, public_metadata: Mapping[str, Any]) -> None:
        self.attempts += 1
        raise MetadataWriteError(external_id, "Metadata update rejected with HTTP 503", 503)


@pytest.fixture
def dispatcher(user_service, metadata_client) -> WebhookDispatcher:
    return WebhookDispatcher(users=user_service, metadata=metadata_client)


@pytest.mark.asyncio
async def test_user_created_persists_record_and_writes_back_metadata(dispatcher, db, metadata_client):
    event = parse_event(
        user_payload(
            "user.created",
            first_name="Ada",
            last_name="Lovelace",
            username="ada",
            image_url="https://img.example.com/ada.png",
        )
    )

    result = await dispatcher.dispatch(event)

    assert result.status_code == 200
    assert result.message == "User created"
    stored = await db.get_user_by_external_id("user_2abc")
    assert stored is not None
    assert stored.email == "ada@example.com"
    assert stored.photo == "https://img.example.com/ada.png"
    assert stored.metadata_synced is True
    assert result.user["id"] == stored.id
    assert metadata_client.metadata["user_2abc"] == {"userId": stored.id}


@pytest.mark.asyncio
async def test_user_created_fills_fallbacks(dispatcher, db):
    event = parse_event(user_payload("user.created"))

    result = await dispatcher.dispatch(event)

    assert result.status_code == 200
    stored = await db.get_user_by_external_id("user_2abc")
    assert stored.username == "user_2abc"
    assert stored.first_name == ""
    assert stored.last_name == ""
    assert stored.photo == ""


@pytest.mark.asyncio
async def test_user_created_without_email_is_rejected(dispatcher, db, metadata_client):
    event = parse_event(user_payload("user.created", emails=[]))

    result = await dispatcher.dispatch(event)

    assert result.status_code == 400
    assert result.message == "User email not found"
    assert await db.get_user_by_external_id("user_2abc") is None
    assert metadata_client.calls == []


@pytest.mark.asyncio
async def test_redelivered_user_created_does_not_duplicate(dispatcher, db, metadata_client):
    event = parse_event(user_payload("user.created"))

    first = await dispatcher.dispatch(event)
    second = await dispatcher.dispatch(event)

    assert first.status_code == second.status_code == 200
    assert first.user["id"] == second.user["id"]
    assert len(metadata_client.calls) == 1


@pytest.mark.asyncio
async def test_metadata_failure_reports_500_but_keeps_local_record(user_service, db):
    metadata = FailingMetadataClient()
    dispatcher = WebhookDispatcher(users=user_service, metadata=metadata)

    result = await dispatcher.dispatch(parse_event(user_payload("user.created")))

    assert result.status_code == 500
    assert result.message == "Error creating user"
    stored = await db.get_user_by_external_id("user_2abc")
    assert stored is not None
    assert stored.metadata_synced is False
    assert metadata.attempts == 1


@pytest.mark.asyncio
async def test_user_updated_applies_profile_changes(dispatcher, db):
    await dispatcher.dispatch(parse_event(user_payload("user.created", first_name="Ada")))

    result = await dispatcher.dispatch(
        parse_event(user_payload("user.updated", first_name="Augusta", image_url="https://img/a.png"))
    )

    assert result.status_code == 200
    assert result.message == "User updated"
    stored = await db.get_user_by_external_id("user_2abc")
    assert stored.first_name == "Augusta"
    assert stored.username == "user_2abc"
    assert stored.photo == "https://img/a.png"
    assert stored.email == "ada@example.com"
    assert stored.credit_balance == 10


@pytest.mark.asyncio
async def test_user_updated_for_unknown_account_returns_500(dispatcher):
    result = await dispatcher.dispatch(parse_event(user_payload("user.updated", external_id="user_ghost")))

    assert result.status_code == 500
    assert result.message == "User not found"


@pytest.mark.asyncio
async def test_user_deleted_without_id_is_rejected(dispatcher, db):
    await dispatcher.dispatch(parse_event(user_payload("user.created")))

    result = await dispatcher.dispatch(parse_event(user_payload("user.deleted", external_id=None)))

    assert result.status_code == 400
    assert result.message == "User ID not found"
    assert await db.get_user_by_external_id("user_2abc") is not None


@pytest.mark.asyncio
async def test_user_deleted_twice_fails_on_redelivery(dispatcher, db):
    await dispatcher.dispatch(parse_event(user_payload("user.created")))
    event = parse_event(user_payload("user.deleted"))

    first = await dispatcher.dispatch(event)
    second = await dispatcher.dispatch(event)

    assert first.status_code == 200
    assert first.message == "User deleted"
    assert first.user["external_id"] == "user_2abc"
    assert await db.get_user_by_external_id("user_2abc") is None
    assert second.status_code == 500
    assert second.message == "User not found"


@pytest.mark.asyncio
async def test_unhandled_event_is_acknowledged_without_mutation(dispatcher, db):
    result = await dispatcher.dispatch(parse_event(user_payload("session.created")))

    assert result.status_code == 200
    assert result.message == "Webhook processed"
    assert result.user is None
    assert await db.get_user_by_external_id("user_2abc") is None


@pytest.mark.asyncio
async def test_deliveries_are_recorded_in_the_ledger(app_context, db, settings):
    dispatcher = app_context.dispatcher

    await dispatcher.dispatch(parse_event(user_payload("user.created")), message_id="msg_1")
    await dispatcher.dispatch(parse_event(user_payload("user.created", emails=[])), message_id="msg_2")

    entries = db.ledger_entries
    assert [e.message_id for e in entries] == ["msg_1", "msg_2"]
    assert entries[0].event_type == LedgerEventType.DELIVERY
    assert entries[0].status_code == 200
    assert entries[1].event_type == LedgerEventType.ERROR
    assert entries[1].status_code == 400
    lines = settings.LEDGER_FILE_PATH.read_text().splitlines()
    assert len(lines) == 2
