"""
Sync Ledger.

One row per pull or push attempt, written at the end of the call in a
session of its own so the entry survives a rolled-back push. A failure to
write the entry is logged and swallowed: the ledger observes sync calls,
it never changes their outcome.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, sessionmaker

from pos_sync.models import SyncLog, utcnow
from shared.config.constants import SyncDirection, SyncStatus
from shared.config.logging import sync_logger as logger
from shared.config.settings import settings
from shared.utils.schemas import (
    SyncDirectionSummary,
    SyncLogOutput,
    SyncLogsOverview,
    SyncSummary,
)


def parse_limit(raw: Any) -> int:
    """
    Lenient limit parsing for the logs endpoint.

    Missing or non-numeric values fall back to the default; numbers are
    clamped to [1, max].
    """
    try:
        value = int(raw)
    except (TypeError, ValueError, OverflowError):
        value = settings.sync_logs_default_limit
    return max(1, min(value, settings.sync_logs_max_limit))


def _success_rate(success: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(success / total * 100, 2)


class SyncLedger:
    """Writes and summarizes sync ledger entries."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def record(
        self,
        branch_id: int,
        direction: str,
        status: str,
        started_at: datetime,
        records_pulled: int = 0,
        records_pushed: int = 0,
        error_message: str | None = None,
    ) -> bool:
        """
        Append one entry. Returns False (after logging) if it could not be
        written.
        """
        try:
            with self._session_factory() as db:
                db.add(
                    SyncLog(
                        branch_id=branch_id,
                        direction=direction,
                        status=status,
                        records_pulled=records_pulled,
                        records_pushed=records_pushed,
                        error_message=error_message,
                        started_at=started_at,
                        finished_at=utcnow(),
                    )
                )
                db.commit()
            return True
        except Exception as e:
            logger.error(
                "Failed to write sync ledger entry",
                branch_id=branch_id,
                direction=direction,
                status=status,
                error=str(e),
            )
            return False

    def get_overview(self, branch_id: int, limit: Any = None) -> SyncLogsOverview:
        """
        Latest entries for a branch (newest first) plus per-direction totals
        over the branch's whole ledger.
        """
        limit = parse_limit(limit)
        db = self._session_factory()
        try:
            logs = db.execute(
                select(SyncLog)
                .where(SyncLog.branch_id == branch_id)
                .order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
                .limit(limit)
            ).scalars().all()

            rows = db.execute(
                select(
                    SyncLog.direction,
                    func.count(SyncLog.id),
                    func.sum(case((SyncLog.status == SyncStatus.SUCCESS, 1), else_=0)),
                )
                .where(SyncLog.branch_id == branch_id)
                .group_by(SyncLog.direction)
            ).all()
        finally:
            db.close()

        buckets = {
            SyncDirection.PUSH: SyncDirectionSummary(),
            SyncDirection.PULL: SyncDirectionSummary(),
        }
        for direction, total, success in rows:
            success = int(success or 0)
            buckets[direction] = SyncDirectionSummary(
                total=total,
                success=success,
                failed=total - success,
                success_rate=_success_rate(success, total),
            )

        return SyncLogsOverview(
            branch_id=branch_id,
            limit=limit,
            summary=SyncSummary(
                push=buckets[SyncDirection.PUSH],
                pull=buckets[SyncDirection.PULL],
            ),
            logs=[SyncLogOutput.model_validate(log) for log in logs],
        )
