"""
Pytest configuration and fixtures for record store tests.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker

from record_store.models import Base, SoftDeleteMixin, SortOrderMixin
from record_store.services import RecordModel
from record_store.services.crud import LifecycleHooks, ModelConfig, ModelRegistry
from shared.infrastructure.db import create_db_engine


# =============================================================================
# Test models
# =============================================================================


class Category(SoftDeleteMixin, SortOrderMixin, Base):
    """Menu category; sub-categories point at their parent (self relation)."""

    __tablename__ = "categories"

    category_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    menu_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Product(SoftDeleteMixin, SortOrderMixin, Base):
    """Product, partitioned by category and kept in sort order."""

    __tablename__ = "products"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    available_from: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    available_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ProductAllergen(SoftDeleteMixin, Base):
    """Soft-deletable association without sort order."""

    __tablename__ = "product_allergens"

    product_allergen_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    allergen: Mapped[str] = mapped_column(String(50), nullable=False)


class BranchPrice(SortOrderMixin, Base):
    """No soft delete: rows are removed and the sort order closes up."""

    __tablename__ = "branch_prices"

    branch_price_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    branch_id: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)


# =============================================================================
# Database
# =============================================================================


@contextmanager
def fresh_session():
    """
    Standalone session on a brand-new database.

    For tests that need several isolated databases (property-based tests
    run many examples inside one test function).
    """
    engine = create_db_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    with fresh_session() as session:
        yield session


# =============================================================================
# Model configurations
# =============================================================================


def build_registry(
    *,
    category_hooks: LifecycleHooks | None = None,
    product_hooks: LifecycleHooks | None = None,
) -> ModelRegistry:
    """Registry with the four test models wired together."""
    return ModelRegistry([
        ModelConfig(
            name="categories",
            table=Category,
            soft_delete_field="is_deleted",
            deleted_at_field="deleted_at",
            category_field="menu_id",
            sort_order_field="sort_order",
            cascade={
                "subcategories": {"target": "self", "keys": {"category_id": "parent_id"}},
                "products": {"keys": "category_id"},
            },
            hooks=category_hooks or LifecycleHooks(),
        ),
        ModelConfig(
            name="products",
            table=Product,
            soft_delete_field="is_deleted",
            deleted_at_field="deleted_at",
            category_field="category_id",
            sort_order_field="sort_order",
            cascade={
                "product_allergens": None,
                "branch_prices": {"keys": "product_id", "hard_delete": True},
            },
            hooks=product_hooks or LifecycleHooks(),
        ),
        ModelConfig(
            name="product_allergens",
            table=ProductAllergen,
            soft_delete_field="is_deleted",
            deleted_at_field="deleted_at",
        ),
        ModelConfig(
            name="branch_prices",
            table=BranchPrice,
            category_field="branch_id",
            sort_order_field="sort_order",
        ),
    ])


@pytest.fixture
def registry():
    """Registry without hooks."""
    return build_registry()


@pytest.fixture
def products(db_session, registry) -> RecordModel:
    return registry.handle("products", db_session)


@pytest.fixture
def categories(db_session, registry) -> RecordModel:
    return registry.handle("categories", db_session)


@pytest.fixture
def allergens(db_session, registry) -> RecordModel:
    return registry.handle("product_allergens", db_session)


@pytest.fixture
def prices(db_session, registry) -> RecordModel:
    return registry.handle("branch_prices", db_session)


# =============================================================================
# Helpers
# =============================================================================


def positions(model: RecordModel) -> dict[int, int]:
    """primary key -> sort order for every row of the table."""
    pk = model.config.primary_key
    return {row[pk]: row["sort_order"] for row in model.with_deleted().get()}


def seed_products(products: RecordModel, layout: list[int | None]) -> list[int]:
    """Insert one product per entry of layout (the entry is its category)."""
    return [
        products.insert({"name": f"Product {i + 1}", "category_id": category})
        for i, category in enumerate(layout)
    ]
