"""
Pytest configuration and fixtures for backend tests.

Every test gets its own file-backed SQLite database: the sync engine opens
several sessions at once (pull workers, ledger writes, the outbox
processor), which an in-memory database shared through one connection
cannot model.
"""

import os

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OUTBOX_WORKER_ENABLED", "false")
os.environ.setdefault("REDIS_PUBLISH_RETRY_DELAY", "0")

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from pos_sync.main import app
from pos_sync.models import (
    Base,
    Branch,
    Category,
    InventoryItem,
    Product,
    RecipeIngredient,
    SeatingTable,
    Shift,
    User,
)
from shared.config.settings import settings
from shared.infrastructure.db import (
    create_db_engine,
    create_session_factory,
    get_db,
    get_session_factory,
)
from shared.infrastructure.events import get_event_circuit_breaker
from shared.security.auth import sign_jwt


def new_id() -> str:
    """Client-style id, as a terminal would generate it."""
    return str(uuid.uuid4())


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'pos_sync_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    """Session for arranging data. Assert through fresh sessions."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def reset_circuit_breaker():
    get_event_circuit_breaker().reset()
    yield
    get_event_circuit_breaker().reset()


@pytest.fixture
def no_pull_overlap():
    """Pull watermarks without the safety overlap, for exact watermark checks."""
    with patch.object(settings, "sync_pull_overlap_seconds", 0.0):
        yield


# =============================================================================
# Seed fixtures
# =============================================================================


@pytest.fixture
def seed_branch(db_session):
    branch = Branch(id=1, name="Main Street", address="1 Main Street")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture
def seed_other_branch(db_session):
    branch = Branch(id=2, name="Harbour", address="9 Harbour Road")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture
def seed_cashier(db_session, seed_branch):
    user = User(
        id=new_id(),
        branch_id=seed_branch.id,
        full_name="Carla Cashier",
        pin_hash="not-a-real-hash",
        role="CASHIER",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def seed_other_cashier(db_session, seed_other_branch):
    user = User(
        id=new_id(),
        branch_id=seed_other_branch.id,
        full_name="Hugo Harbour",
        pin_hash="not-a-real-hash",
        role="CASHIER",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def seed_shift(db_session, seed_cashier):
    shift = Shift(
        id=new_id(),
        branch_id=seed_cashier.branch_id,
        user_id=seed_cashier.id,
        opening_time=datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc),
        starting_cash=Decimal("100.00"),
    )
    db_session.add(shift)
    db_session.commit()
    return shift


@pytest.fixture
def seed_menu(db_session, seed_branch):
    """
    Coffee (18 g beans + 0.2 L milk per cup) and Soda (no recipe).

    Returns a dict of the created rows keyed by short name.
    """
    drinks = Category(id=new_id(), branch_id=seed_branch.id, name="Drinks", sort_order=1)
    coffee = Product(id=new_id(), branch_id=seed_branch.id, category_id=drinks.id,
                     name="Coffee", price=Decimal("3.50"))
    soda = Product(id=new_id(), branch_id=seed_branch.id, category_id=drinks.id,
                   name="Soda", price=Decimal("2.00"))
    beans = InventoryItem(id=new_id(), branch_id=seed_branch.id, name="Coffee beans",
                          unit_of_measure="g", current_stock=Decimal("1000"),
                          minimum_stock=Decimal("100"))
    milk = InventoryItem(id=new_id(), branch_id=seed_branch.id, name="Milk",
                         unit_of_measure="L", current_stock=Decimal("2"),
                         minimum_stock=Decimal("1"))
    table = SeatingTable(id=new_id(), branch_id=seed_branch.id, name="T-01")
    db_session.add_all([drinks, coffee, soda, beans, milk, table])
    db_session.flush()
    db_session.add_all([
        RecipeIngredient(id=new_id(), product_id=coffee.id, inventory_item_id=beans.id,
                         amount=Decimal("18")),
        RecipeIngredient(id=new_id(), product_id=coffee.id, inventory_item_id=milk.id,
                         amount=Decimal("0.2")),
    ])
    db_session.commit()
    return {
        "drinks": drinks,
        "coffee": coffee,
        "soda": soda,
        "beans": beans,
        "milk": milk,
        "table": table,
    }


# =============================================================================
# Payload builders
# =============================================================================


def order_payload(user_id: str, shift_id: str | None = None, **overrides) -> dict:
    payload = {
        "id": new_id(),
        "receiptNumber": f"R-{uuid.uuid4().hex[:6]}",
        "userId": user_id,
        "shiftId": shift_id,
        "totalAmount": "10.50",
        "status": "OPEN",
        "createdAt": "2024-05-01T09:15:00Z",
    }
    payload.update(overrides)
    return payload


def item_payload(order_id: str, product_id: str, quantity: str = "1", **overrides) -> dict:
    payload = {
        "id": new_id(),
        "orderId": order_id,
        "productId": product_id,
        "quantity": quantity,
        "priceAtTimeOfOrder": "3.50",
    }
    payload.update(overrides)
    return payload


def payment_payload(order_id: str, shift_id: str | None = None, **overrides) -> dict:
    payload = {
        "id": new_id(),
        "orderId": order_id,
        "shiftId": shift_id,
        "method": "CASH",
        "amount": "10.50",
        "createdAt": "2024-05-01T09:20:00Z",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def mock_redis():
    """
    Fake Redis client for every publisher in the app.

    ``publish`` is an AsyncMock; inspect its calls to see dashboard events.
    """
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    get_client = AsyncMock(return_value=redis)
    with patch("pos_sync.services.events.outbox_processor.get_redis_client", get_client), \
            patch("pos_sync.routers.inventory.routes.get_redis_client", get_client):
        yield redis


@pytest.fixture
def client(session_factory, mock_redis):
    """
    Test client wired to the per-test database.

    Each request gets its own session, as in production. The lifespan is not
    run, so no background outbox loop competes with the tests.
    """
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    yield TestClient(app)

    app.dependency_overrides.clear()


def make_auth_headers(user_id: str, branch_id: int = 1, roles: list[str] | None = None) -> dict:
    token = sign_jwt({"sub": user_id, "branch_id": branch_id, "roles": roles or ["CASHIER"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(seed_cashier):
    return make_auth_headers(seed_cashier.id, seed_cashier.branch_id, ["CASHIER"])


@pytest.fixture
def manager_headers(seed_branch):
    return make_auth_headers(new_id(), seed_branch.id, ["MANAGER"])
