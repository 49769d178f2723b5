from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..clients.metadata import IdentityMetadataClient
from ..exceptions import ValidationError, handle_error
from ..logging.ledger_logger import LedgerLogger
from ..models.events import (
    UnhandledEvent,
    UserCreatedEvent,
    UserDeletedEvent,
    UserUpdatedEvent,
    WebhookEvent,
)
from ..models.user import CreateUserParams, RepositoryError, UpdateUserParams
from ..services.user_service import USER_NOT_FOUND, UserService


logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    status_code: int
    message: str
    user: Optional[Dict[str, Any]] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class WebhookDispatcher:
    """
    Applies one verified provider event to the local user store.

    Each delivery is handled on its own; the only state shared between
    deliveries is the database. Unknown event types are acknowledged with a
    200 so the provider stops redelivering them.
    """

    def __init__(
        self,
        users: UserService,
        metadata: IdentityMetadataClient,
        ledger: Optional[LedgerLogger] = None,
    ) -> None:
        self._users = users
        self._metadata = metadata
        self._ledger = ledger

    async def dispatch(self, event: WebhookEvent, message_id: Optional[str] = None) -> DispatchResult:
        try:
            if isinstance(event, UserCreatedEvent):
                result = await self._on_user_created(event)
            elif isinstance(event, UserUpdatedEvent):
                result = await self._on_user_updated(event)
            elif isinstance(event, UserDeletedEvent):
                result = await self._on_user_deleted(event)
            else:
                result = self._on_unhandled(event)
        except ValidationError as exc:
            result = DispatchResult(status_code=exc.status_code, message=exc.message)

        await self._record(event, result, message_id)
        return result

    async def _on_user_created(self, event: UserCreatedEvent) -> DispatchResult:
        data = event.data
        email = data.primary_email
        if not email:
            raise ValidationError("User email not found")

        params = CreateUserParams(
            external_id=data.id,
            email=email,
            username=data.username or data.id,
            first_name=data.first_name or "",
            last_name=data.last_name or "",
            photo=data.image_url or "",
        )

        new_user = await self._users.create_user(params)
        if isinstance(new_user, RepositoryError):
            logger.error("Error creating user %s: %s", data.id, new_user.error)
            return DispatchResult(500, "Error creating user", details={"error": new_user.error})

        # Second phase: link the provider account back to the local record.
        # A failure here leaves the local record with metadata_synced=False
        # for the reconciler to pick up.
        if not new_user.metadata_synced:
            try:
                await self._metadata.set_user_metadata(data.id, {"userId": new_user.id})
            except Exception as exc:
                logger.error(
                    "Error creating user %s: metadata write-back failed: %s",
                    data.id,
                    exc,
                    extra={"user_id": new_user.id},
                )
                return DispatchResult(
                    500,
                    "Error creating user",
                    details={"error": handle_error(exc), "user_id": new_user.id},
                )
            synced = await self._users.mark_metadata_synced(new_user.id)  # type: ignore[arg-type]
            if not isinstance(synced, RepositoryError):
                new_user = synced

        return DispatchResult(200, "User created", user=new_user.to_public())

    async def _on_user_updated(self, event: UserUpdatedEvent) -> DispatchResult:
        data = event.data
        params = UpdateUserParams(
            first_name=data.first_name or "",
            last_name=data.last_name or "",
            username=data.username or data.id,
            photo=data.image_url or "",
        )

        updated_user = await self._users.update_user(data.id, params)
        if isinstance(updated_user, RepositoryError):
            logger.error("Error updating user %s: %s", data.id, updated_user.error)
            message = USER_NOT_FOUND if updated_user.not_found else "Error updating user"
            return DispatchResult(500, message, details={"error": updated_user.error})

        return DispatchResult(200, "User updated", user=updated_user.to_public())

    async def _on_user_deleted(self, event: UserDeletedEvent) -> DispatchResult:
        external_id = event.data.id
        if not external_id:
            raise ValidationError("User ID not found")

        deleted_user = await self._users.delete_user(external_id)
        if isinstance(deleted_user, RepositoryError):
            logger.error("Error deleting user %s: %s", external_id, deleted_user.error)
            message = USER_NOT_FOUND if deleted_user.not_found else "Error deleting user"
            return DispatchResult(500, message, details={"error": deleted_user.error})

        return DispatchResult(
            200,
            "User deleted",
            user=deleted_user.to_public() if deleted_user is not None else None,
        )

    @staticmethod
    def _on_unhandled(event: UnhandledEvent) -> DispatchResult:
        logger.info("Webhook received: %s for user %s", event.type, event.external_id)
        return DispatchResult(200, "Webhook processed")

    async def _record(
        self, event: WebhookEvent, result: DispatchResult, message_id: Optional[str]
    ) -> None:
        if self._ledger is None:
            return
        try:
            await self._ledger.log_delivery(
                webhook_type=event.type,
                status_code=result.status_code,
                message=result.message,
                external_id=event.external_id,
                message_id=message_id,
                details=result.details,
            )
        except Exception:
            # The delivery outcome stands even when the audit write fails.
            logger.exception("Failed to record webhook delivery %s", message_id)
