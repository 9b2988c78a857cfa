"""
Sync router.

Offline terminals pull the branch's changes and push their queued records.
The branch always comes from the caller's token, never from the payload.
"""

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session, sessionmaker

from pos_sync.services.domain import SyncLedger, SyncService
from pos_sync.services.events import process_pending_events_once
from shared.config.constants import MANAGEMENT_ROLES, TERMINAL_ROLES
from shared.infrastructure.db import get_db, get_session_factory
from shared.security.auth import current_user_context, require_roles
from shared.security.rate_limit import SYNC_RATE_LIMIT, limiter
from shared.utils.schemas import (
    SyncLogsOverview,
    SyncPullResponse,
    SyncPushRequest,
    SyncPushResponse,
)


router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.get("/pull", response_model=SyncPullResponse)
@limiter.limit(SYNC_RATE_LIMIT)
def pull_changes(
    request: Request,
    last_sync_timestamp: str | None = Query(default=None, alias="lastSyncTimestamp"),
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SyncPullResponse:
    """
    Everything of the caller's branch changed after ``lastSyncTimestamp``.

    Omit the parameter for a full resync. Store the returned ``timestamp``
    and send it on the next pull.
    """
    require_roles(ctx, TERMINAL_ROLES)
    service = SyncService(db, session_factory)
    return service.pull_changes(last_sync_timestamp, ctx["branch_id"])


@router.post("/push", response_model=SyncPushResponse, response_model_exclude_none=True)
@limiter.limit(SYNC_RATE_LIMIT)
def push_changes(
    request: Request,
    batch: SyncPushRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SyncPushResponse:
    """
    Merge a batch of offline records.

    Returns 200 even when some records were rejected: check ``success`` and
    ``errors``. Re-pushing the same batch is safe.
    """
    require_roles(ctx, TERMINAL_ROLES)
    service = SyncService(db, session_factory)
    result = service.push_changes(batch, ctx["branch_id"], user_id=ctx["sub"])

    # Deduct stock and notify dashboards right after the response
    background_tasks.add_task(process_pending_events_once, session_factory)
    return result


@router.get("/logs", response_model=SyncLogsOverview)
def get_sync_logs(
    limit: str | None = Query(default=None),
    session_factory: sessionmaker = Depends(get_session_factory),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SyncLogsOverview:
    """
    Latest sync ledger entries of the branch with push/pull success rates.

    Requires OWNER or MANAGER role.
    """
    require_roles(ctx, MANAGEMENT_ROLES)
    return SyncLedger(session_factory).get_overview(ctx["branch_id"], limit)
