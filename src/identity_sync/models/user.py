from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from pydantic import BaseModel, Field

from .base import DBSerializableModel


DEFAULT_PLAN_ID = 1
DEFAULT_CREDIT_BALANCE = 10


class User(DBSerializableModel):
    """
    Local user record, joined to the identity provider through `external_id`.

    `credit_balance` is only ever changed through an atomic increment;
    webhook-driven updates never include it.
    """

    collection_name: ClassVar[str] = "users"

    id: Optional[str] = Field(default=None)
    external_id: str = Field(
        description="Account identifier assigned by the identity provider.",
    )
    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    photo: str = ""
    plan_id: int = DEFAULT_PLAN_ID
    credit_balance: int = DEFAULT_CREDIT_BALANCE
    metadata_synced: bool = Field(
        default=False,
        description="True once the local id was written back to the provider metadata.",
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CreateUserParams(BaseModel):
    external_id: str
    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    photo: str = ""

    def to_user(self) -> User:
        return User(**self.model_dump())


class UpdateUserParams(BaseModel):
    """Fields a provider-side profile change may touch."""

    first_name: str = ""
    last_name: str = ""
    username: str
    photo: str = ""


class RepositoryError(BaseModel):
    """
    Failure reported as data by the user service instead of being raised.

    `not_found` separates a missing record from a storage failure so that
    callers can word their responses accordingly.
    """

    error: str
    not_found: bool = False
