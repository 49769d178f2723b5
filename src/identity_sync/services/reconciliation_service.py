from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..clients.metadata import IdentityMetadataClient
from ..exceptions import handle_error
from ..logging.ledger_logger import LedgerLogger
from ..models.user import RepositoryError
from .user_service import UserService


logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    checked: int = 0
    synced: int = 0
    failed: List[str] = field(default_factory=list)


class MetadataReconciler:
    """
    Repairs local records whose provider metadata write-back never succeeded.

    User creation is two separate writes (local insert, then provider
    metadata). A crash or provider error between them leaves a record with
    `metadata_synced=False`; this pass retries the second write for those.
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

    async def run(self, limit: int = 100) -> ReconciliationReport:
        pending = await self._users.get_users_pending_metadata(limit)
        if isinstance(pending, RepositoryError):
            raise RuntimeError(f"Could not list pending users: {pending.error}")

        report = ReconciliationReport(checked=len(pending))
        for user in pending:
            try:
                await self._metadata.set_user_metadata(user.external_id, {"userId": user.id})
            except Exception as exc:
                logger.warning("Metadata write-back still failing for %s: %s", user.external_id, exc)
                report.failed.append(user.external_id)
                await self._record(user.external_id, "Metadata write-back failed", handle_error(exc))
                continue

            marked = await self._users.mark_metadata_synced(user.id)  # type: ignore[arg-type]
            if isinstance(marked, RepositoryError):
                report.failed.append(user.external_id)
                await self._record(user.external_id, "Could not mark metadata synced", marked.error)
                continue

            report.synced += 1
            await self._record(user.external_id, "Metadata write-back repaired", None)

        logger.info(
            "Metadata reconciliation finished: %s checked, %s synced, %s failed",
            report.checked,
            report.synced,
            len(report.failed),
        )
        return report

    async def _record(self, external_id: str, message: str, error: Optional[str]) -> None:
        if self._ledger is None:
            return
        try:
            await self._ledger.log_reconciliation(
                external_id=external_id,
                message=message,
                details={"error": error} if error else {},
            )
        except Exception:
            logger.exception("Failed to record reconciliation of %s in the ledger", external_id)
