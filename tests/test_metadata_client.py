from __future__ import annotations

import json

import httpx
import pytest

from identity_sync.clients.metadata import ClerkMetadataClient
from identity_sync.exceptions import MetadataWriteError


def _client(handler) -> ClerkMetadataClient:
    http_client = httpx.AsyncClient(
        base_url="https://api.clerk.test/v1",
        transport=httpx.MockTransport(handler),
    )
    return ClerkMetadataClient(secret_key="sk_test_123", http_client=http_client)


@pytest.mark.asyncio
async def test_set_user_metadata_patches_public_metadata():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"id": "user_1"})

    client = _client(handler)
    await client.set_user_metadata("user_1", {"userId": "abc123"})

    assert len(requests) == 1
    assert requests[0].method == "PATCH"
    assert requests[0].url.path == "/v1/users/user_1/metadata"
    assert json.loads(requests[0].content) == {"public_metadata": {"userId": "abc123"}}


@pytest.mark.asyncio
async def test_rejected_update_raises_metadata_write_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"errors": [{"code": "resource_not_found"}]})

    client = _client(handler)

    with pytest.raises(MetadataWriteError) as excinfo:
        await client.set_user_metadata("user_gone", {"userId": "abc123"})

    assert excinfo.value.status_code == 404
    assert excinfo.value.external_id == "user_gone"


@pytest.mark.asyncio
async def test_transport_failure_raises_metadata_write_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(MetadataWriteError):
        await client.set_user_metadata("user_1", {"userId": "abc123"})


def test_secret_key_is_required():
    with pytest.raises(ValueError):
        ClerkMetadataClient(secret_key="")

