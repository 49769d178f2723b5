from __future__ import annotations

import logging
from typing import List, Optional, Union

from ..cache.invalidation import PageInvalidator
from ..db.connector import DatabaseConnector
from ..exceptions import handle_error
from ..models.user import CreateUserParams, RepositoryError, UpdateUserParams, User


logger = logging.getLogger(__name__)

UserResult = Union[User, RepositoryError]

USER_NOT_FOUND = "User not found"
USER_UPDATE_FAILED = "User update failed"
USER_CREDITS_UPDATE_FAILED = "User credits update failed"


class UserService:
    """
    CRUD operations on local user records, keyed by the provider's external id.

    Every operation obtains the shared DB manager through the connector and
    reports failures as a `RepositoryError` value instead of raising; storage
    exceptions never escape this class.
    """

    def __init__(
        self,
        connector: DatabaseConnector,
        invalidator: Optional[PageInvalidator] = None,
    ) -> None:
        self._connector = connector
        self._invalidator = invalidator

    async def create_user(self, params: CreateUserParams) -> UserResult:
        """
        Create the record for `params.external_id`, or return the existing one
        when the provider redelivers the same creation event.
        """
        try:
            db = await self._connector.connect()
            return await db.add_user(params.to_user())
        except Exception as exc:
            logger.exception("Failed to create user %s", params.external_id)
            return RepositoryError(error=handle_error(exc))

    async def get_user_by_id(self, external_id: str) -> UserResult:
        try:
            db = await self._connector.connect()
            user = await db.get_user_by_external_id(external_id)
            if user is None:
                return RepositoryError(error=USER_NOT_FOUND, not_found=True)
            return user
        except Exception as exc:
            logger.exception("Failed to load user %s", external_id)
            return RepositoryError(error=handle_error(exc))

    async def update_user(self, external_id: str, params: UpdateUserParams) -> UserResult:
        try:
            db = await self._connector.connect()
            user = await db.update_user_by_external_id(external_id, params.model_dump())
            if user is None:
                return RepositoryError(error=USER_UPDATE_FAILED, not_found=True)
            return user
        except Exception as exc:
            logger.exception("Failed to update user %s", external_id)
            return RepositoryError(error=handle_error(exc))

    async def delete_user(self, external_id: str) -> Union[User, RepositoryError, None]:
        """
        Hard delete the record for `external_id`.

        Returns None when the record vanished between lookup and delete.
        """
        try:
            db = await self._connector.connect()
            user_to_delete = await db.get_user_by_external_id(external_id)
            if user_to_delete is None:
                return RepositoryError(error=USER_NOT_FOUND, not_found=True)

            deleted = await db.delete_user(user_to_delete.id)  # type: ignore[arg-type]
            if self._invalidator:
                await self._invalidator.invalidate("/")
            return deleted
        except Exception as exc:
            logger.exception("Failed to delete user %s", external_id)
            return RepositoryError(error=handle_error(exc))

    async def update_credits(self, user_id: str, credit_fee: int) -> UserResult:
        """
        Add `credit_fee` to the balance of the user with local id `user_id`.
        Pass a negative fee to consume credits.
        """
        try:
            db = await self._connector.connect()
            user = await db.increment_user_credits(user_id, credit_fee)
            if user is None:
                return RepositoryError(error=USER_CREDITS_UPDATE_FAILED, not_found=True)
            return user
        except Exception as exc:
            logger.exception("Failed to update credits for user %s", user_id)
            return RepositoryError(error=handle_error(exc))

    async def mark_metadata_synced(self, user_id: str) -> UserResult:
        try:
            db = await self._connector.connect()
            user = await db.mark_metadata_synced(user_id)
            if user is None:
                return RepositoryError(error=USER_NOT_FOUND, not_found=True)
            return user
        except Exception as exc:
            logger.exception("Failed to mark metadata synced for user %s", user_id)
            return RepositoryError(error=handle_error(exc))

    async def get_users_pending_metadata(self, limit: int = 100) -> Union[List[User], RepositoryError]:
        try:
            db = await self._connector.connect()
            return list(await db.get_users_pending_metadata(limit))
        except Exception as exc:
            logger.exception("Failed to list users pending metadata write-back")
            return RepositoryError(error=handle_error(exc))

