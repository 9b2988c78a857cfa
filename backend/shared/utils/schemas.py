"""
Pydantic schemas for the sync API.

Terminals speak camelCase JSON; every schema accepts both camelCase and
snake_case on input and emits camelCase. Unknown fields are ignored, which
is also how a ``branchId`` sent by a terminal gets dropped: the branch
always comes from the token.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.config.constants import Limits


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError:
        # Only ValueError becomes a validation error
        raise ValueError("date-time is out of range in UTC") from None


# =============================================================================
# Common Types
# =============================================================================

ClientId = Annotated[str, Field(min_length=1, max_length=Limits.MAX_CLIENT_ID_LENGTH)]
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]

Role = Literal["OWNER", "MANAGER", "CASHIER", "WAITER", "KITCHEN"]
OrderStatus = Literal["OPEN", "KITCHEN", "PREPARING", "READY", "SERVED", "CLOSED", "CANCELLED"]
PaymentMethod = Literal["CASH", "CARD", "TRANSFER", "OTHER"]
SyncDirection = Literal["PULL", "PUSH"]
SyncStatus = Literal["SUCCESS", "FAILED"]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Push (terminal -> server)
# =============================================================================


class ShiftInput(CamelModel):
    id: ClientId
    user_id: ClientId
    opening_time: UtcDatetime
    closing_time: Optional[UtcDatetime] = None
    starting_cash: Decimal = Decimal("0")
    expected_cash: Optional[Decimal] = None
    actual_cash: Optional[Decimal] = None
    notes: Optional[str] = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class OrderInput(CamelModel):
    id: ClientId
    receipt_number: str = Field(min_length=1, max_length=Limits.MAX_RECEIPT_NUMBER_LENGTH)
    user_id: ClientId
    table_id: Optional[ClientId] = None
    shift_id: Optional[ClientId] = None
    total_amount: Decimal = Decimal("0")
    status: OrderStatus = "OPEN"
    created_at: Optional[UtcDatetime] = None


class OrderItemInput(CamelModel):
    id: ClientId
    order_id: ClientId
    product_id: ClientId
    quantity: Decimal
    price_at_time_of_order: Decimal
    notes: Optional[str] = Field(default=None, max_length=Limits.MAX_NOTES_LENGTH)


class PaymentInput(CamelModel):
    id: ClientId
    order_id: ClientId
    shift_id: Optional[ClientId] = None
    method: PaymentMethod
    amount: Decimal
    reference: Optional[str] = Field(default=None, max_length=Limits.MAX_REFERENCE_LENGTH)
    created_at: Optional[UtcDatetime] = None


class AuditLogInput(CamelModel):
    id: ClientId
    user_id: Optional[ClientId] = None
    action: str = Field(min_length=1, max_length=Limits.MAX_ACTION_LENGTH)
    order_id: Optional[ClientId] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: Optional[UtcDatetime] = None


class SyncPushRequest(CamelModel):
    """A batch of offline changes. Every list is optional."""

    shifts: list[ShiftInput] = Field(default_factory=list)
    orders: list[OrderInput] = Field(default_factory=list)
    order_items: list[OrderItemInput] = Field(default_factory=list)
    payments: list[PaymentInput] = Field(default_factory=list)
    audit_logs: list[AuditLogInput] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.shifts or self.orders or self.order_items or self.payments or self.audit_logs)


class SyncRecordErrorOutput(CamelModel):
    id: str
    error: str


class SyncPushResponse(CamelModel):
    """
    Push outcome. ``errors`` is omitted when empty; ``success`` is false
    whenever any record failed, so callers must read the body.
    """

    success: bool
    processed_orders: int = 0
    processed_shifts: int = 0
    processed_audit_logs: int = 0
    errors: Optional[list[SyncRecordErrorOutput]] = None


# =============================================================================
# Pull (server -> terminal)
# =============================================================================


class SyncedEntityOutput(CamelModel):
    """Fields shared by every pulled row. Inactive rows are tombstones."""

    id: str
    branch_id: int
    is_active: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime
    deleted_at: Optional[UtcDatetime] = None


class CategoryOutput(SyncedEntityOutput):
    name: str
    color_hex: Optional[str] = None
    sort_order: int


class ProductOutput(SyncedEntityOutput):
    category_id: Optional[str] = None
    name: str
    price: Decimal
    is_available: bool


class UserOutput(SyncedEntityOutput):
    """Terminal user without the PIN hash."""

    full_name: str
    role: Role


class SeatingTableOutput(SyncedEntityOutput):
    name: str
    floor: int
    status: str
    x: int
    y: int


class OrderOutput(SyncedEntityOutput):
    receipt_number: str
    user_id: str
    table_id: Optional[str] = None
    shift_id: Optional[str] = None
    total_amount: Decimal
    status: OrderStatus


class ShiftOutput(SyncedEntityOutput):
    user_id: str
    opening_time: UtcDatetime
    closing_time: Optional[UtcDatetime] = None
    starting_cash: Decimal
    expected_cash: Optional[Decimal] = None
    actual_cash: Optional[Decimal] = None
    notes: Optional[str] = None


class SyncChanges(CamelModel):
    categories: list[CategoryOutput] = Field(default_factory=list)
    products: list[ProductOutput] = Field(default_factory=list)
    users: list[UserOutput] = Field(default_factory=list)
    seating_tables: list[SeatingTableOutput] = Field(default_factory=list)
    orders: list[OrderOutput] = Field(default_factory=list)
    shifts: list[ShiftOutput] = Field(default_factory=list)

    def total(self) -> int:
        return (
            len(self.categories)
            + len(self.products)
            + len(self.users)
            + len(self.seating_tables)
            + len(self.orders)
            + len(self.shifts)
        )


class SyncPullResponse(CamelModel):
    """``timestamp`` is the watermark the terminal sends on its next pull."""

    timestamp: UtcDatetime
    changes: SyncChanges


# =============================================================================
# Sync ledger
# =============================================================================


class SyncLogOutput(CamelModel):
    id: int
    branch_id: int
    direction: SyncDirection
    status: SyncStatus
    records_pulled: int
    records_pushed: int
    error_message: Optional[str] = None
    started_at: UtcDatetime
    finished_at: UtcDatetime


class SyncDirectionSummary(CamelModel):
    total: int = 0
    success: int = 0
    failed: int = 0
    success_rate: float = 0.0


class SyncSummary(CamelModel):
    push: SyncDirectionSummary
    pull: SyncDirectionSummary


class SyncLogsOverview(CamelModel):
    branch_id: int
    limit: int
    summary: SyncSummary
    logs: list[SyncLogOutput]


# =============================================================================
# Inventory
# =============================================================================


class InventoryItemOutput(CamelModel):
    id: str
    name: str
    unit_of_measure: str
    current_stock: Decimal
    minimum_stock: Decimal
    low_stock: bool = False


class RestockRequest(CamelModel):
    amount: Decimal = Field(gt=0)
