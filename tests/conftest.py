"""Shared fixtures for Catalog Engine tests.

Every test runs against a fresh SQLite database file; the schema is
dropped and recreated before each test.
"""

import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from decimal import Decimal
from pathlib import Path
from typing import Any

_DB_PATH = Path(tempfile.mkdtemp(prefix="catalog-engine-tests-")) / "catalog.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("LOG_JSON", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from catalog_engine.catalog.models import Category, Product  # noqa: E402
from catalog_engine.domain.state_machines import ProductWorkflowState  # noqa: E402
from catalog_engine.domain.value_objects import build_full_path, normalize_slug  # noqa: E402
from catalog_engine.infrastructure import models as job_models  # noqa: E402, F401
from catalog_engine.infrastructure.database import Base, async_session_factory  # noqa: E402

_sync_engine = create_engine(f"sqlite:///{_DB_PATH}")

CategoryFactory = Callable[..., Awaitable[Category]]
ProductFactory = Callable[..., Awaitable[Product]]


@pytest.fixture(autouse=True)
def reset_database() -> Generator[None, None, None]:
    """Recreate all tables before each test."""
    Base.metadata.drop_all(_sync_engine)
    Base.metadata.create_all(_sync_engine)
    yield


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[AsyncSession, None]:
    """Create an async database session."""
    async with async_session_factory() as session:
        yield session


# ============================================================================
# Data Factories
# ============================================================================


@pytest.fixture
def make_category(session: AsyncSession) -> CategoryFactory:
    """Insert categories directly, bypassing the hierarchy rules."""

    async def _make(
        name: str,
        parent: Category | None = None,
        is_active: bool = True,
        sort_order: int = 0,
    ) -> Category:
        category = Category(
            name=name,
            slug=normalize_slug(name),
            full_path=build_full_path(name, parent.full_path if parent else None),
            parent_id=parent.id if parent else None,
            sort_order=sort_order,
            is_active=is_active,
        )
        session.add(category)
        await session.commit()
        return category

    return _make


@pytest.fixture
def make_product(session: AsyncSession) -> ProductFactory:
    """Insert products directly."""

    async def _make(
        seller_id: str,
        sku: str,
        category: Category | None = None,
        workflow_state: ProductWorkflowState = ProductWorkflowState.ACTIVE,
        **fields: Any,
    ) -> Product:
        product = Product(
            seller_id=seller_id,
            merchant_sku=sku,
            title=fields.pop("title", f"Product {sku}"),
            price=fields.pop("price", Decimal("10.00")),
            stock=fields.pop("stock", 5),
            category_id=category.id if category else None,
            category=category.full_path if category else "",
            workflow_state=workflow_state.value,
            **fields,
        )
        session.add(product)
        await session.commit()
        return product

    return _make
