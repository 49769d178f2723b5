from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Optional

from ..models.ledger import LedgerEntry
from ..models.user import User


class BaseDBManager(ABC):
    """
    DB-agnostic async manager interface.

    Concrete implementations (MongoDB, in-memory) implement these methods.
    Every method touches a single document, so each call is atomic on its
    own; nothing here spans documents.
    """

    # User operations
    @abstractmethod
    async def add_user(self, user: User) -> User:
        """
        Insert `user` unless a record with the same external id exists,
        in which case the existing record is returned untouched.
        """
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_external_id(self, external_id: str) -> Optional[User]: ...

    @abstractmethod
    async def update_user_by_external_id(
        self, external_id: str, fields: Mapping[str, Any]
    ) -> Optional[User]:
        """Apply `fields` and return the updated record, or None if nothing matched."""
        ...

    @abstractmethod
    async def delete_user(self, user_id: str) -> Optional[User]:
        """Hard delete by local id; returns the removed record or None."""
        ...

    @abstractmethod
    async def increment_user_credits(self, user_id: str, amount: int) -> Optional[User]:
        """Atomically add `amount` (may be negative) to the credit balance."""
        ...

    @abstractmethod
    async def mark_metadata_synced(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def get_users_pending_metadata(self, limit: int) -> Iterable[User]: ...

    # Ledger
    @abstractmethod
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry: ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
