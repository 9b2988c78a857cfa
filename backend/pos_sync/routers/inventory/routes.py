"""
Inventory router.

Stock status for dashboards and manual restock.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos_sync.services.domain import InventoryService
from shared.config.constants import MANAGEMENT_ROLES, TERMINAL_ROLES
from shared.config.logging import inventory_logger as logger
from shared.infrastructure.db import get_db
from shared.infrastructure.events import get_redis_client, publish_inventory_event
from shared.security.auth import current_user_context, require_roles
from shared.utils.schemas import InventoryItemOutput, RestockRequest


router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryItemOutput])
def get_inventory_status(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[InventoryItemOutput]:
    """Active items of the caller's branch, lowest stock first."""
    require_roles(ctx, TERMINAL_ROLES)
    return InventoryService(db).get_inventory_status(ctx["branch_id"])


@router.patch("/{item_id}/restock", response_model=InventoryItemOutput)
async def restock_item(
    item_id: str,
    body: RestockRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> InventoryItemOutput:
    """
    Add stock to an item and broadcast the new snapshot.

    Requires OWNER or MANAGER role.
    """
    require_roles(ctx, MANAGEMENT_ROLES)
    branch_id = ctx["branch_id"]
    service = InventoryService(db)
    item = service.restock_item(item_id, branch_id, body.amount)

    try:
        redis = await get_redis_client()
        snapshot = service.get_inventory_status(branch_id)
        await publish_inventory_event(
            redis,
            branch_id,
            [entry.model_dump(mode="json", by_alias=True) for entry in snapshot],
        )
    except Exception as e:
        logger.warning("Inventory update broadcast failed", branch_id=branch_id, error=str(e))

    return item
