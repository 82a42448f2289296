"""Shared fixtures for API tests."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_api.api.exports import get_export_service
from catalog_api.batch.pipeline import JobLauncher
from catalog_api.batch.service import ProductExportService
from catalog_api.infrastructure.database import get_session
from catalog_api.main import app


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    """Directory export files are written to."""
    path = tmp_path / "exports"
    path.mkdir()
    return path


@pytest.fixture
def client(
    session_factory: async_sessionmaker[AsyncSession], export_dir: Path
) -> TestClient:
    """Create test client over an isolated database and export directory."""

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    launcher = JobLauncher(export_base_dir=export_dir)

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_export_service] = lambda: ProductExportService(
        session_factory=session_factory, launcher=launcher, chunk_size=5
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def create_category(client: TestClient):
    """Create a category through the API and return its body."""

    def factory(name: str = "Electronics", description: str | None = None) -> dict:
        response = client.post(
            "/api/categories", json={"name": name, "description": description}
        )
        assert response.status_code == 201, response.text
        return response.json()

    return factory


@pytest.fixture
def create_product(client: TestClient):
    """Create a product through the API and return its body."""

    def factory(
        name: str = "Widget",
        price: float = 10.0,
        stock: int = 5,
        category_id: int | None = None,
        **fields,
    ) -> dict:
        payload = {
            "name": name,
            "price": price,
            "stock": stock,
            "in_stock": stock > 0,
            "category_id": category_id,
            **fields,
        }
        response = client.post("/api/products", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return factory


@pytest.fixture
def sample_products(create_category, create_product) -> dict:
    """Electronics and Clothing with three products."""
    electronics = create_category("Electronics", "Electronic devices")
    clothing = create_category("Clothing", "Apparel")
    products = [
        create_product("Cotton T-Shirt", 19.99, 200, clothing["id"]),
        create_product("Smartphone X", 999.99, 50, electronics["id"]),
        create_product("Laptop Pro", 1499.99, 30, electronics["id"]),
    ]
    return {"electronics": electronics, "clothing": clothing, "products": products}
