"""
Tests for pushing offline batches.

Tests verify:
- Records are upserted by client id and re-pushes are idempotent
- A bad record is reported and skipped while the rest of the batch commits
- Payment shift resolution (explicit, same batch, persisted order)
- Branch isolation: ids owned by another branch are rejected
- Outbox rows for new orders and the sync ledger entry of each push
"""

import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from pos_sync.models import AuditLog, Order, OrderItem, OutboxEvent, Payment, Shift, SyncLog
from pos_sync.services.domain import SyncLedger, SyncService
from shared.infrastructure.events import NEW_ORDERS, ORDER_INVENTORY_DEDUCTION
from shared.utils.exceptions import SyncFailedError
from shared.utils.schemas import SyncPushRequest
from conftest import item_payload, new_id, order_payload, payment_payload


@pytest.fixture
def sync_service(db_session, session_factory):
    return SyncService(db_session, session_factory)


def push(service: SyncService, payload: dict, branch_id: int = 1, user_id: str | None = None):
    return service.push_changes(SyncPushRequest.model_validate(payload), branch_id, user_id)


def count(session_factory, model, *criteria) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(model).where(*criteria))


def ledger_entries(session_factory) -> list[SyncLog]:
    with session_factory() as db:
        return list(db.execute(select(SyncLog).order_by(SyncLog.id)).scalars().all())


def shift_payload(user_id: str, **overrides) -> dict:
    payload = {
        "id": new_id(),
        "userId": user_id,
        "openingTime": "2024-05-01T08:00:00Z",
        "startingCash": "100.00",
    }
    payload.update(overrides)
    return payload


class TestPushCounts:
    """Processed counters and the success flag."""

    def test_full_batch(self, sync_service, session_factory, seed_cashier, seed_menu):
        shift = shift_payload(seed_cashier.id)
        order = order_payload(seed_cashier.id, shift["id"])
        payload = {
            "shifts": [shift],
            "orders": [order],
            "orderItems": [item_payload(order["id"], seed_menu["coffee"].id, "2")],
            "payments": [payment_payload(order["id"])],
            "auditLogs": [{"id": new_id(), "userId": seed_cashier.id, "action": "DRAWER_OPEN"}],
        }

        result = push(sync_service, payload)

        assert result.success is True
        assert result.processed_orders == 1
        assert result.processed_shifts == 1
        assert result.processed_audit_logs == 1
        assert result.errors is None
        assert count(session_factory, OrderItem) == 1
        assert count(session_factory, Payment) == 1

    def test_empty_batch_succeeds(self, sync_service, session_factory, seed_branch):
        result = push(sync_service, {})

        assert result.success is True
        assert result.processed_orders == 0
        assert [e.status for e in ledger_entries(session_factory)] == ["SUCCESS"]

    def test_errors_omitted_from_json_when_empty(self, sync_service, seed_branch):
        body = push(sync_service, {}).model_dump(by_alias=True, exclude_none=True)

        assert body == {
            "success": True,
            "processedOrders": 0,
            "processedShifts": 0,
            "processedAuditLogs": 0,
        }


class TestUpserts:
    """The same client id pushed again updates instead of duplicating."""

    def test_repush_is_idempotent(self, sync_service, session_factory, seed_cashier, seed_shift, seed_menu):
        order = order_payload(seed_cashier.id, seed_shift.id)
        payload = {
            "orders": [order],
            "orderItems": [item_payload(order["id"], seed_menu["coffee"].id)],
            "payments": [payment_payload(order["id"])],
        }

        first = push(sync_service, payload)
        second = push(sync_service, payload)

        assert first.success and second.success
        assert second.processed_orders == 1
        assert count(session_factory, Order) == 1
        assert count(session_factory, OrderItem) == 1
        assert count(session_factory, Payment) == 1
        # Deduction is queued only when the order is created
        assert count(session_factory, OutboxEvent, OutboxEvent.event_type == ORDER_INVENTORY_DEDUCTION) == 1
        assert count(session_factory, OutboxEvent, OutboxEvent.event_type == NEW_ORDERS) == 1

    def test_order_status_and_total_are_updated(self, sync_service, session_factory, seed_cashier):
        order = order_payload(seed_cashier.id)
        push(sync_service, {"orders": [order]})

        order.update(status="CLOSED", totalAmount="12.00")
        push(sync_service, {"orders": [order]})

        with session_factory() as db:
            row = db.get(Order, order["id"])
            assert row.status == "CLOSED"
            assert Decimal(str(row.total_amount)) == Decimal("12.00")

    def test_shift_closing_fields_are_updated(self, sync_service, session_factory, seed_cashier):
        shift = shift_payload(seed_cashier.id)
        push(sync_service, {"shifts": [shift]})

        shift.update(closingTime="2024-05-01T17:00:00Z", actualCash="350.50", notes="short 2.00")
        result = push(sync_service, {"shifts": [shift]})

        assert result.processed_shifts == 1
        with session_factory() as db:
            row = db.get(Shift, shift["id"])
            assert row.closing_time is not None
            assert Decimal(str(row.actual_cash)) == Decimal("350.50")
            assert row.notes == "short 2.00"

    def test_item_quantity_is_amended(self, sync_service, session_factory, seed_cashier, seed_menu):
        order = order_payload(seed_cashier.id)
        item = item_payload(order["id"], seed_menu["coffee"].id, "1")
        push(sync_service, {"orders": [order], "orderItems": [item]})

        item["quantity"] = "3"
        push(sync_service, {"orderItems": [item]})

        with session_factory() as db:
            assert Decimal(str(db.get(OrderItem, item["id"]).quantity)) == Decimal("3")

    def test_repushed_payment_is_not_changed(self, sync_service, session_factory, seed_cashier, seed_shift):
        order = order_payload(seed_cashier.id, seed_shift.id)
        payment = payment_payload(order["id"], amount="10.50")
        push(sync_service, {"orders": [order], "payments": [payment]})

        payment["amount"] = "99.00"
        result = push(sync_service, {"payments": [payment]})

        assert result.success is True
        with session_factory() as db:
            assert Decimal(str(db.get(Payment, payment["id"]).amount)) == Decimal("10.50")

    def test_repushed_audit_log_is_benign(self, sync_service, session_factory, seed_cashier):
        log = {"id": new_id(), "userId": seed_cashier.id, "action": "VOID", "metadata": {"reason": "typo"}}

        push(sync_service, {"auditLogs": [log]})
        result = push(sync_service, {"auditLogs": [log]})

        assert result.success is True
        assert result.processed_audit_logs == 1
        with session_factory() as db:
            row = db.get(AuditLog, log["id"])
            assert json.loads(row.event_metadata) == {"reason": "typo"}
        assert count(session_factory, AuditLog) == 1


class TestPaymentShiftResolution:

    def test_payment_without_any_shift_is_rejected(self, sync_service, session_factory, seed_cashier):
        order = order_payload(seed_cashier.id)
        payment = payment_payload(order["id"])

        result = push(sync_service, {"orders": [order], "payments": [payment]})

        assert result.success is False
        assert result.processed_orders == 1
        assert [e.model_dump() for e in result.errors] == [
            {"id": payment["id"], "error": "Payment error: no shift could be resolved for payment"}
        ]
        assert count(session_factory, Order) == 1
        assert count(session_factory, Payment) == 0

    def test_shift_taken_from_order_in_same_batch(self, sync_service, session_factory, seed_cashier, seed_shift):
        order = order_payload(seed_cashier.id, seed_shift.id)
        payment = payment_payload(order["id"])

        push(sync_service, {"orders": [order], "payments": [payment]})

        with session_factory() as db:
            assert db.get(Payment, payment["id"]).shift_id == seed_shift.id

    def test_shift_taken_from_persisted_order(self, sync_service, session_factory, seed_cashier, seed_shift):
        order = order_payload(seed_cashier.id, seed_shift.id)
        push(sync_service, {"orders": [order]})
        payment = payment_payload(order["id"])

        result = push(sync_service, {"payments": [payment]})

        assert result.success is True
        with session_factory() as db:
            assert db.get(Payment, payment["id"]).shift_id == seed_shift.id

    def test_explicit_shift_wins(self, sync_service, session_factory, db_session, seed_cashier, seed_shift):
        other_shift = Shift(
            id=new_id(), branch_id=1, user_id=seed_cashier.id,
            opening_time=seed_shift.opening_time,
        )
        db_session.add(other_shift)
        db_session.commit()
        order = order_payload(seed_cashier.id, seed_shift.id)
        payment = payment_payload(order["id"], other_shift.id)

        push(sync_service, {"orders": [order], "payments": [payment]})

        with session_factory() as db:
            assert db.get(Payment, payment["id"]).shift_id == other_shift.id


class TestPartialFailure:
    """One bad record never sinks the batch."""

    def test_item_for_unknown_order(self, sync_service, session_factory, seed_cashier, seed_menu):
        good = order_payload(seed_cashier.id)
        orphan_order_id = new_id()
        orphan = item_payload(orphan_order_id, seed_menu["coffee"].id)

        result = push(sync_service, {
            "orders": [good],
            "orderItems": [item_payload(good["id"], seed_menu["soda"].id), orphan],
        })

        assert result.success is False
        assert result.errors[0].id == orphan["id"]
        assert result.errors[0].error == f"Item error: order {orphan_order_id} not found"
        assert count(session_factory, OrderItem) == 1

    def test_constraint_violation_is_reported(self, sync_service, session_factory, seed_cashier):
        good = order_payload(seed_cashier.id)
        bad = order_payload(new_id())  # unknown user

        result = push(sync_service, {"orders": [bad, good]})

        assert result.success is False
        assert result.processed_orders == 1
        assert result.errors[0].id == bad["id"]
        assert result.errors[0].error.startswith("Order error: ")
        with session_factory() as db:
            assert db.get(Order, good["id"]) is not None
            assert db.get(Order, bad["id"]) is None

    def test_failed_records_are_listed_in_ledger(self, sync_service, session_factory, seed_cashier):
        order = order_payload(seed_cashier.id)
        payment = payment_payload(order["id"])

        push(sync_service, {"orders": [order], "payments": [payment]})

        [entry] = ledger_entries(session_factory)
        assert entry.direction == "PUSH"
        assert entry.status == "FAILED"
        assert entry.records_pushed == 1
        assert json.loads(entry.error_message)[0]["id"] == payment["id"]


class TestBranchIsolation:

    def test_branch_comes_from_caller(self, sync_service, session_factory, seed_cashier, seed_other_branch):
        order = order_payload(seed_cashier.id, branchId=2)

        push(sync_service, {"orders": [order]})

        with session_factory() as db:
            assert db.get(Order, order["id"]).branch_id == 1

    def test_id_of_another_branch_is_rejected(
        self, sync_service, session_factory, seed_cashier, seed_other_cashier
    ):
        theirs = order_payload(seed_other_cashier.id, totalAmount="50.00")
        push(sync_service, {"orders": [theirs]}, branch_id=2)

        hijack = dict(theirs, userId=seed_cashier.id, totalAmount="0.00", status="CANCELLED")
        result = push(sync_service, {"orders": [hijack]}, branch_id=1)

        assert result.success is False
        assert result.errors[0].error == f"Order error: id {theirs['id']} belongs to another branch"
        with session_factory() as db:
            row = db.get(Order, theirs["id"])
            assert row.branch_id == 2
            assert row.status == "OPEN"

    def test_item_cannot_target_order_of_another_branch(
        self, sync_service, seed_cashier, seed_other_cashier, seed_menu
    ):
        theirs = order_payload(seed_other_cashier.id)
        push(sync_service, {"orders": [theirs]}, branch_id=2)

        result = push(sync_service, {"orderItems": [item_payload(theirs["id"], seed_menu["coffee"].id)]})

        assert result.errors[0].error == f"Item error: order {theirs['id']} belongs to another branch"


class TestOutboxRows:

    def test_new_orders_queue_deductions_and_one_dashboard_event(
        self, sync_service, session_factory, seed_cashier
    ):
        orders = [order_payload(seed_cashier.id) for _ in range(2)]

        push(sync_service, {"orders": orders}, user_id=seed_cashier.id)

        with session_factory() as db:
            events = db.execute(select(OutboxEvent).order_by(OutboxEvent.id)).scalars().all()
        deductions = [e for e in events if e.event_type == ORDER_INVENTORY_DEDUCTION]
        [new_orders] = [e for e in events if e.event_type == NEW_ORDERS]

        assert sorted(e.aggregate_id for e in deductions) == sorted(o["id"] for o in orders)
        assert json.loads(new_orders.payload) == {
            "branch_id": 1,
            "order_ids": [o["id"] for o in orders],
            "actor_user_id": seed_cashier.id,
        }
        assert all(e.status.value == "PENDING" for e in events)

    def test_updates_only_queue_nothing(self, sync_service, session_factory, seed_cashier):
        order = order_payload(seed_cashier.id)
        push(sync_service, {"orders": [order]})

        push(sync_service, {"orders": [dict(order, status="CLOSED")]})

        assert count(session_factory, OutboxEvent) == 2


class TestLedgerAndFailures:

    def test_success_entry(self, sync_service, session_factory, seed_cashier):
        push(sync_service, {"orders": [order_payload(seed_cashier.id)], "shifts": [shift_payload(seed_cashier.id)]})

        [entry] = ledger_entries(session_factory)
        assert entry.status == "SUCCESS"
        assert entry.records_pushed == 2
        assert entry.error_message is None
        assert entry.finished_at >= entry.started_at

    def test_ledger_failure_does_not_change_outcome(self, db_session, session_factory, seed_cashier):
        broken_factory = MagicMock(side_effect=RuntimeError("ledger store down"))
        service = SyncService(db_session, session_factory, ledger=SyncLedger(broken_factory))
        order = order_payload(seed_cashier.id)

        result = push(service, {"orders": [order]})

        assert result.success is True
        assert count(session_factory, Order) == 1

    def test_commit_failure_aborts_batch(self, sync_service, session_factory, seed_cashier):
        order = order_payload(seed_cashier.id)
        failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with patch("pos_sync.services.domain.sync_service.safe_commit", side_effect=failure):
            with pytest.raises(SyncFailedError) as exc_info:
                push(sync_service, {"orders": [order]})

        assert exc_info.value.status_code == 500
        assert count(session_factory, Order) == 0
        assert count(session_factory, OutboxEvent) == 0
        [entry] = ledger_entries(session_factory)
        assert entry.status == "FAILED"
        assert entry.error_message == "disk I/O error"
