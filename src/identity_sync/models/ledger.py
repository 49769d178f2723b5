from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from pydantic import Field

from .base import DBSerializableModel


class LedgerEventType(str, Enum):
    DELIVERY = "delivery"
    ERROR = "error"
    RECONCILIATION = "reconciliation"


class LedgerEntry(DBSerializableModel):
    """
    Audit record of one processed webhook delivery (or reconciliation step),
    persisted to DB and mirrored to a line-delimited JSON file.
    """

    collection_name: ClassVar[str] = "sync_ledger"

    id: Optional[str] = Field(default=None)
    event_type: LedgerEventType
    webhook_type: Optional[str] = None
    external_id: Optional[str] = None
    message_id: Optional[str] = Field(
        default=None,
        description="Delivery id sent by the provider; identical across redeliveries.",
    )
    status_code: Optional[int] = None
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)
