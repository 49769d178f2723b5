from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from .base import BaseDBManager
from ..models.ledger import LedgerEntry
from ..models.user import User


class InMemoryDBManager(BaseDBManager):
    """
    Simple in-memory implementation used for tests and local development.
    NOT suitable for production, but exercises the abstraction and services.

    Records are copied on the way in and out so that callers never hold a
    reference into the store, mirroring a real document database.
    """

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._external_index: Dict[str, str] = {}
        self._ledger: List[LedgerEntry] = []

    @staticmethod
    def _next_id() -> str:
        return uuid4().hex

    # User operations
    async def add_user(self, user: User) -> User:
        existing_id = self._external_index.get(user.external_id)
        if existing_id is not None:
            return self._users[existing_id].model_copy()
        stored = user.model_copy()
        if stored.id is None:
            stored.id = self._next_id()
        self._users[stored.id] = stored
        self._external_index[stored.external_id] = stored.id
        return stored.model_copy()

    async def get_user(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        user_id = self._external_index.get(external_id)
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def update_user_by_external_id(
        self, external_id: str, fields: Mapping[str, Any]
    ) -> Optional[User]:
        user_id = self._external_index.get(external_id)
        if user_id is None:
            return None
        updated = self._users[user_id].model_copy(
            update={**fields, "updated_at": datetime.utcnow()}
        )
        self._users[user_id] = updated
        return updated.model_copy()

    async def delete_user(self, user_id: str) -> Optional[User]:
        user = self._users.pop(user_id, None)
        if user is None:
            return None
        self._external_index.pop(user.external_id, None)
        return user

    async def increment_user_credits(self, user_id: str, amount: int) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        user.credit_balance += amount
        user.updated_at = datetime.utcnow()
        return user.model_copy()

    async def mark_metadata_synced(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        user.metadata_synced = True
        return user.model_copy()

    async def get_users_pending_metadata(self, limit: int) -> Iterable[User]:
        pending = [u for u in self._users.values() if not u.metadata_synced]
        pending.sort(key=lambda u: u.created_at)
        return [u.model_copy() for u in pending[:limit]]

    # Ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        if entry.id is None:
            entry.id = self._next_id()
        self._ledger.append(entry)
        return entry

    @property
    def ledger_entries(self) -> List[LedgerEntry]:
        return list(self._ledger)
