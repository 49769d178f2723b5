from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..db.connector import DatabaseConnector
from ..models.ledger import LedgerEntry, LedgerEventType


logger = logging.getLogger(__name__)


class LedgerLogger:
    """
    Structured sync ledger that writes to a file and the database.

    File logging is append-only, line-delimited JSON for easier ingestion
    by log aggregators. DB logging uses the `LedgerEntry` model and the
    connector's `BaseDBManager`.
    """

    def __init__(self, connector: DatabaseConnector, file_path: Path) -> None:
        self._connector = connector
        self._file_path = file_path
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    async def log_delivery(
        self,
        webhook_type: str,
        status_code: int,
        message: str,
        external_id: Optional[str] = None,
        message_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        event_type = LedgerEventType.DELIVERY if status_code < 400 else LedgerEventType.ERROR
        await self._log(
            LedgerEntry(
                event_type=event_type,
                webhook_type=webhook_type,
                external_id=external_id,
                message_id=message_id,
                status_code=status_code,
                message=message,
                details=details or {},
            )
        )

    async def log_reconciliation(
        self,
        external_id: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        await self._log(
            LedgerEntry(
                event_type=LedgerEventType.RECONCILIATION,
                external_id=external_id,
                message=message,
                details=details or {},
            )
        )

    async def _log(self, entry: LedgerEntry) -> None:
        db = await self._connector.connect()
        await db.add_ledger_entry(entry)
        # The file mirror must never fail the sync itself.
        try:
            line = json.dumps(entry.serialize_for_db(), default=str)
            with self._file_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            logger.warning("Could not append to ledger file %s: %s", self._file_path, exc)
