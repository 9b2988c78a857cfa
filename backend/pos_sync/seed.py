"""
Seed data for development and testing.
Creates one branch with staff, a small menu, tables, inventory and recipes.
"""

import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_sync.models import (
    Branch,
    Category,
    InventoryItem,
    Product,
    RecipeIngredient,
    SeatingTable,
    User,
)
from shared.config.constants import Roles
from shared.config.logging import get_logger
from shared.security.password import hash_pin

logger = get_logger(__name__)


# Stable ids so terminals and fixtures can reference seeded rows
SEED_NAMESPACE = uuid.UUID("6f1c1f0e-5a43-4c2b-9d59-3f4b1e0a7c21")

DEFAULT_BRANCH_NAME = "Main Street"
DEFAULT_PIN = "1234"
TABLE_COUNT = 8


def seed_id(name: str) -> str:
    """Deterministic client-style id for a seeded row."""
    return str(uuid.uuid5(SEED_NAMESPACE, name))


def seed_branch(db: Session) -> Branch:
    branch = db.scalar(select(Branch).where(Branch.name == DEFAULT_BRANCH_NAME))
    if branch is None:
        branch = Branch(name=DEFAULT_BRANCH_NAME, address="1 Main Street")
        db.add(branch)
        db.flush()
    return branch


def seed_staff(db: Session, branch_id: int) -> None:
    staff = [
        ("owner", "Olivia Owner", Roles.OWNER),
        ("manager", "Marco Manager", Roles.MANAGER),
        ("cashier", "Carla Cashier", Roles.CASHIER),
        ("waiter", "Walter Waiter", Roles.WAITER),
        ("kitchen", "Kim Kitchen", Roles.KITCHEN),
    ]
    pin_hash = hash_pin(DEFAULT_PIN)
    for key, full_name, role in staff:
        db.add(
            User(
                id=seed_id(f"user:{key}"),
                branch_id=branch_id,
                full_name=full_name,
                pin_hash=pin_hash,
                role=role,
            )
        )


def seed_menu(db: Session, branch_id: int) -> None:
    drinks = Category(id=seed_id("category:drinks"), branch_id=branch_id,
                      name="Drinks", color_hex="#3b82f6", sort_order=1)
    food = Category(id=seed_id("category:food"), branch_id=branch_id,
                    name="Food", color_hex="#f97316", sort_order=2)
    db.add_all([drinks, food])

    products = [
        ("coffee", "Coffee", "3.50", drinks.id),
        ("soda", "Soda", "2.00", drinks.id),
        ("burger", "Burger", "9.90", food.id),
        ("fries", "Fries", "3.90", food.id),
    ]
    for key, name, price, category_id in products:
        db.add(
            Product(
                id=seed_id(f"product:{key}"),
                branch_id=branch_id,
                category_id=category_id,
                name=name,
                price=Decimal(price),
            )
        )

    for number in range(1, TABLE_COUNT + 1):
        db.add(
            SeatingTable(
                id=seed_id(f"table:{number}"),
                branch_id=branch_id,
                name=f"T-{number:02d}",
                floor=1,
                x=(number - 1) % 4,
                y=(number - 1) // 4,
            )
        )


def seed_inventory(db: Session, branch_id: int) -> None:
    """
    Coffee uses 18 g of beans and 0.2 L of milk per cup. Soda is sold as
    bought and has no recipe.
    """
    beans = InventoryItem(
        id=seed_id("inventory:coffee-beans"),
        branch_id=branch_id,
        name="Coffee beans",
        unit_of_measure="g",
        current_stock=Decimal("5000"),
        minimum_stock=Decimal("500"),
        cost_per_unit=Decimal("0.0300"),
    )
    milk = InventoryItem(
        id=seed_id("inventory:milk"),
        branch_id=branch_id,
        name="Milk",
        unit_of_measure="L",
        current_stock=Decimal("20"),
        minimum_stock=Decimal("4"),
        cost_per_unit=Decimal("1.1000"),
    )
    db.add_all([beans, milk])

    coffee_id = seed_id("product:coffee")
    db.add_all([
        RecipeIngredient(id=seed_id("recipe:coffee:beans"), product_id=coffee_id,
                         inventory_item_id=beans.id, amount=Decimal("18")),
        RecipeIngredient(id=seed_id("recipe:coffee:milk"), product_id=coffee_id,
                         inventory_item_id=milk.id, amount=Decimal("0.2")),
    ])


def seed(db: Session) -> None:
    """
    Seed the development branch.
    Idempotent: does nothing once the branch has staff.
    """
    branch = seed_branch(db)
    if db.scalar(select(User.id).where(User.branch_id == branch.id).limit(1)):
        logger.info("Seed data already present, skipping", branch_id=branch.id)
        db.commit()
        return

    logger.info("Seeding development data", branch_id=branch.id)
    seed_staff(db, branch.id)
    seed_menu(db, branch.id)
    db.flush()
    seed_inventory(db, branch.id)
    db.commit()
    logger.info("Seed completed", branch_id=branch.id)
