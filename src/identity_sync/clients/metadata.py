from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Tuple

import httpx

from ..exceptions import MetadataWriteError


logger = logging.getLogger(__name__)

DEFAULT_CLERK_API_URL = "https://api.clerk.com/v1"
DEFAULT_TIMEOUT_SECONDS = 10.0


class IdentityMetadataClient(ABC):
    """
    Writes side-channel metadata onto an account at the identity provider.
    """

    @abstractmethod
    async def set_user_metadata(
        self, external_id: str, public_metadata: Mapping[str, Any]
    ) -> None:
        ...

    async def close(self) -> None:
        return None


class ClerkMetadataClient(IdentityMetadataClient):
    """Thin async wrapper around the Clerk backend API user metadata endpoint."""

    def __init__(
        self,
        *,
        secret_key: str,
        api_base_url: str = DEFAULT_CLERK_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key is required")

        normalized_base = api_base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=normalized_base,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Accept": "application/json",
                "User-Agent": "identity-sync/1.0",
            },
            timeout=timeout_seconds,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def set_user_metadata(
        self, external_id: str, public_metadata: Mapping[str, Any]
    ) -> None:
        # Clerk deep-merges the submitted object into the existing metadata.
        try:
            response = await self._client.patch(
                f"/users/{external_id}/metadata",
                json={"public_metadata": dict(public_metadata)},
            )
        except httpx.HTTPError as exc:
            raise MetadataWriteError(external_id, f"Metadata request failed: {exc}") from exc

        if response.is_error:
            raise MetadataWriteError(
                external_id,
                f"Metadata update rejected with HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        logger.debug("Updated public metadata for %s", external_id)


class InMemoryMetadataClient(IdentityMetadataClient):
    """
    In-memory metadata store used for tests and local development without
    provider credentials.
    """

    def __init__(self) -> None:
        self.metadata: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def set_user_metadata(
        self, external_id: str, public_metadata: Mapping[str, Any]
    ) -> None:
        self.calls.append((external_id, dict(public_metadata)))
        self.metadata.setdefault(external_id, {}).update(public_metadata)
