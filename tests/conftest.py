"""Shared fixtures.

Every test gets its own SQLite database file under ``tmp_path``.
"""

import os

# Must be set before catalog_api.infrastructure.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JSON_LOGS", "false")

from collections.abc import AsyncGenerator, Callable
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from catalog_api.catalog.models import Category, Product
from catalog_api.infrastructure.database import Base


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ignores ON DELETE rules unless asked
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_session_factory(db_path: Path) -> async_sessionmaker[AsyncSession]:
    """Create the schema in ``db_path`` and return an async session factory.

    The schema is created through the sync driver, and the async engine
    uses ``NullPool`` so connections never outlive the event loop that
    opened them (TestClient runs each request on its own loop).
    """
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def session_factory(tmp_path: Path) -> async_sessionmaker[AsyncSession]:
    """Session factory over a fresh database."""
    return make_session_factory(tmp_path / "catalog.db")


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session over a fresh database."""
    async with session_factory() as session:
        yield session


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Factory for unsaved products with sensible defaults."""

    def factory(
        name: str = "Widget",
        price: str = "10.00",
        stock: int = 5,
        in_stock: bool | None = None,
        description: str | None = None,
        category_id: int | None = None,
    ) -> Product:
        return Product(
            name=name,
            description=description,
            price=Decimal(price),
            stock=stock,
            in_stock=stock > 0 if in_stock is None else in_stock,
            category_id=category_id,
        )

    return factory


@pytest_asyncio.fixture
async def electronics(session: AsyncSession) -> Category:
    """Saved "Electronics" category."""
    category = Category(name="Electronics", description="Electronic devices and gadgets")
    session.add(category)
    await session.flush()
    return category


@pytest_asyncio.fixture
async def catalog(
    session: AsyncSession,
    electronics: Category,
    make_product: Callable[..., Product],
) -> dict[str, Any]:
    """Two categories with a handful of products, committed.

    Products (insertion order = id order):
        Smartphone X      999.99   50  Electronics
        Laptop Pro       1499.99   30  Electronics
        Cotton T-Shirt     19.99  200  Clothing
        Winter Jacket     129.99    0  Clothing (not in stock)
        Loose Cable         4.99   10  no category
    """
    clothing = Category(name="Clothing", description="Apparel and fashion items")
    session.add(clothing)
    await session.flush()

    products = [
        make_product("Smartphone X", "999.99", 50, description="Latest smartphone", category_id=electronics.id),
        make_product("Laptop Pro", "1499.99", 30, description="High-performance laptop", category_id=electronics.id),
        make_product("Cotton T-Shirt", "19.99", 200, description="Comfortable cotton shirt", category_id=clothing.id),
        make_product("Winter Jacket", "129.99", 0, description="Warm jacket for winter", category_id=clothing.id),
        make_product("Loose Cable", "4.99", 10),
    ]
    session.add_all(products)
    await session.commit()

    return {"electronics": electronics, "clothing": clothing, "products": products}
