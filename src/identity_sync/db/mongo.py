from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Type, TypeVar
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .base import BaseDBManager
from ..models.base import DBSerializableModel
from ..models.ledger import LedgerEntry
from ..models.user import User


TModel = TypeVar("TModel", bound=DBSerializableModel)


class MongoDBManager(BaseDBManager):
    """
    MongoDB implementation of BaseDBManager using motor (async driver).

    IDs are stored as string-based `_id` fields and mirrored in the `id`
    attribute of each Pydantic model, which keeps the rest of the system
    agnostic of MongoDB specifics.

    `external_id` carries a unique index; user creation is an upsert on it,
    so a redelivered creation event cannot produce a second record.
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        client: Optional[AsyncIOMotorClient] = None,
    ) -> None:
        self._db = database
        self._client = client

    @classmethod
    async def connect(cls, uri: str, db_name: str, **client_kwargs: Any) -> "MongoDBManager":
        client = AsyncIOMotorClient(uri, **client_kwargs)
        manager = cls(client[db_name], client=client)
        try:
            await manager._db.command("ping")
            await manager.ensure_indexes()
        except Exception:
            client.close()
            raise
        return manager

    async def ensure_indexes(self) -> None:
        users = self._db[User.collection_name]
        await users.create_index([("external_id", ASCENDING)], unique=True)
        await users.create_index([("metadata_synced", ASCENDING), ("created_at", ASCENDING)])

    async def ping(self) -> bool:
        await self._db.command("ping")
        return True

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()

    # Helper utilities
    @staticmethod
    def _prepare_insert(model: TModel) -> Dict[str, Any]:
        data = model.serialize_for_db()
        model_id = getattr(model, "id", None)
        if not model_id:
            model_id = uuid4().hex
            data["id"] = model_id
        data["_id"] = model_id
        return data

    @staticmethod
    def _decode(model_cls: Type[TModel], doc: Optional[Mapping[str, Any]]) -> Optional[TModel]:
        if doc is None:
            return None
        data = dict(doc)
        if "_id" in data and "id" not in data:
            data["id"] = str(data["_id"])
        return model_cls.model_validate(data)

    # User operations
    async def add_user(self, user: User) -> User:
        col = self._db[User.collection_name]
        data = self._prepare_insert(user)
        try:
            doc = await col.find_one_and_update(
                {"external_id": user.external_id},
                {"$setOnInsert": data},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # A concurrent delivery inserted the same external id first.
            doc = await col.find_one({"external_id": user.external_id})
        return self._decode(User, doc)  # type: ignore[return-value]

    async def get_user(self, user_id: str) -> Optional[User]:
        col = self._db[User.collection_name]
        doc = await col.find_one({"_id": user_id})
        return self._decode(User, doc)

    async def get_user_by_external_id(self, external_id: str) -> Optional[User]:
        col = self._db[User.collection_name]
        doc = await col.find_one({"external_id": external_id})
        return self._decode(User, doc)

    async def update_user_by_external_id(
        self, external_id: str, fields: Mapping[str, Any]
    ) -> Optional[User]:
        col = self._db[User.collection_name]
        doc = await col.find_one_and_update(
            {"external_id": external_id},
            {"$set": {**fields, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(User, doc)

    async def delete_user(self, user_id: str) -> Optional[User]:
        col = self._db[User.collection_name]
        doc = await col.find_one_and_delete({"_id": user_id})
        return self._decode(User, doc)

    async def increment_user_credits(self, user_id: str, amount: int) -> Optional[User]:
        col = self._db[User.collection_name]
        doc = await col.find_one_and_update(
            {"_id": user_id},
            {"$inc": {"credit_balance": amount}, "$set": {"updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(User, doc)

    async def mark_metadata_synced(self, user_id: str) -> Optional[User]:
        col = self._db[User.collection_name]
        doc = await col.find_one_and_update(
            {"_id": user_id},
            {"$set": {"metadata_synced": True}},
            return_document=ReturnDocument.AFTER,
        )
        return self._decode(User, doc)

    async def get_users_pending_metadata(self, limit: int) -> Iterable[User]:
        col = self._db[User.collection_name]
        cursor = col.find({"metadata_synced": False}).sort("created_at", 1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [self._decode(User, d) for d in docs if d is not None]  # type: ignore[misc]

    # Ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        col = self._db[LedgerEntry.collection_name]
        data = self._prepare_insert(entry)
        entry.id = data["_id"]
        await col.insert_one(data)
        return entry
