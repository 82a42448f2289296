"""Catalog services for product and category operations.

Services sit between the routers and the repositories: they check that
referenced entities exist and merge partial updates. They return
entities; routers convert them to response models.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.catalog.models import Category, Product
from catalog_api.catalog.pagination import Page, PageRequest, Slice
from catalog_api.catalog.repository import CategoryRepository, ProductRepository
from catalog_api.catalog.specifications import (
    CategoryFilter,
    ProductFilter,
    category_specification,
    product_specification,
)
from catalog_api.domain.exceptions import CategoryNotFoundError, ProductNotFoundError

logger = structlog.get_logger()


# ============================================================================
# Partial Updates
# ============================================================================

PRODUCT_UPDATABLE_FIELDS = ("name", "description", "price", "in_stock", "stock", "category_id")
CATEGORY_UPDATABLE_FIELDS = ("name", "description")


def _apply_patch(
    existing: Any, patch: Mapping[str, Any], fields: tuple[str, ...]
) -> Any:
    for field in fields:
        value = patch.get(field)
        if value is None:
            continue
        if field == "name":
            value = value.strip()
        setattr(existing, field, value)
    return existing


def apply_product_update(existing: Product, patch: Mapping[str, Any]) -> Product:
    """Overwrite the fields of ``existing`` that are set in ``patch``.

    Fields missing from the patch or set to ``None`` keep their current
    value. Keys that are not product columns are ignored.

    Args:
        existing: Product to update in place.
        patch: Field values to apply.

    Returns:
        The updated product.
    """
    return _apply_patch(existing, patch, PRODUCT_UPDATABLE_FIELDS)


def apply_category_update(existing: Category, patch: Mapping[str, Any]) -> Category:
    """Overwrite the fields of ``existing`` that are set in ``patch``."""
    return _apply_patch(existing, patch, CATEGORY_UPDATABLE_FIELDS)


# ============================================================================
# Product Service
# ============================================================================


class ProductService:
    """Service for product operations.

    Example usage:
        async with async_session_factory() as session:
            service = ProductService(session)
            page = await service.filter_products(
                ProductFilter(min_price=Decimal("500")),
                PageRequest.of(0, 20, Sort.by("desc", "price")),
            )
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session
        self.repository = ProductRepository(session)
        self.categories = CategoryRepository(session)

    async def _get_or_raise(self, product_id: int) -> Product:
        product = await self.repository.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def _ensure_category(self, category_id: int | None) -> None:
        if category_id is not None and not await self.categories.exists_by_id(category_id):
            raise CategoryNotFoundError(category_id)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def get_all_products(self) -> list[Product]:
        """All products ordered by id."""
        return await self.repository.find_all()

    async def get_products_page(self, page_request: PageRequest) -> Page[Product]:
        """Counted page over all products."""
        return await self.repository.find_all_page(page_request)

    async def get_product_by_id(self, product_id: int) -> Product:
        """Get a product.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        return await self._get_or_raise(product_id)

    async def create_product(self, product: Product) -> Product:
        """Create a product.

        Args:
            product: Unsaved product.

        Returns:
            Created product.

        Raises:
            CategoryNotFoundError: If ``category_id`` is unknown.
        """
        await self._ensure_category(product.category_id)

        product = await self.repository.save(product)

        logger.info(
            "Product created",
            product_id=product.id,
            category_id=product.category_id,
        )
        return product

    async def update_product(
        self, product_id: int, changes: Mapping[str, Any]
    ) -> Product:
        """Apply a partial update to a product.

        Args:
            product_id: Product to update.
            changes: Field values to overwrite; ``None`` values are skipped.

        Returns:
            Updated product.

        Raises:
            ProductNotFoundError: If the product does not exist.
            CategoryNotFoundError: If ``category_id`` is unknown.
        """
        product = await self._get_or_raise(product_id)
        await self._ensure_category(changes.get("category_id"))

        product = await self.repository.save(apply_product_update(product, changes))

        logger.info(
            "Product updated",
            product_id=product_id,
            fields=sorted(k for k in PRODUCT_UPDATABLE_FIELDS if changes.get(k) is not None),
        )
        return product

    async def delete_product(self, product_id: int) -> None:
        """Delete a product.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
        product = await self._get_or_raise(product_id)
        await self.repository.delete(product)
        logger.info("Product deleted", product_id=product_id)

    # ------------------------------------------------------------------
    # Derived lookups
    # ------------------------------------------------------------------

    async def search_products_by_name(self, name: str) -> list[Product]:
        return await self.repository.find_by_name_containing(name)

    async def search_products_by_name_page(
        self, name: str, page_request: PageRequest
    ) -> Page[Product]:
        return await self.repository.find_by_name_containing_page(name, page_request)

    async def search_products_by_name_slice(
        self, name: str, page_request: PageRequest
    ) -> Slice[Product]:
        return await self.repository.find_by_name_containing_slice(name, page_request)

    async def get_products_under_price(self, price: Decimal) -> list[Product]:
        return await self.repository.find_by_price_less_than(price)

    async def get_products_under_price_page(
        self, price: Decimal, page_request: PageRequest
    ) -> Page[Product]:
        return await self.repository.find_by_price_less_than_page(price, page_request)

    async def get_products_under_price_slice(
        self, price: Decimal, page_request: PageRequest
    ) -> Slice[Product]:
        return await self.repository.find_by_price_less_than_slice(price, page_request)

    async def get_products_in_stock(self) -> list[Product]:
        return await self.repository.find_by_in_stock(True)

    async def get_products_in_stock_page(
        self, page_request: PageRequest
    ) -> Page[Product]:
        return await self.repository.find_by_in_stock_page(True, page_request)

    async def get_products_in_stock_slice(
        self, page_request: PageRequest
    ) -> Slice[Product]:
        return await self.repository.find_by_in_stock_slice(True, page_request)

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    async def filter_products(
        self, product_filter: ProductFilter, page_request: PageRequest
    ) -> Page[Product]:
        """Counted page of products matching a filter.

        Args:
            product_filter: Filter criteria; an empty filter matches all.
            page_request: Page and sort.

        Returns:
            Page of matching products.

        Raises:
            CategoryNotFoundError: If the filter names an unknown category.
            InvalidSortFieldError: If the sort field is not allowed.
        """
        await self._ensure_category(product_filter.category_id)

        spec = product_specification(product_filter)
        logger.debug("Filtering products", clauses=len(spec), page=page_request.page)

        return await self.repository.find_all_matching(spec, page_request)

    async def filter_products_slice(
        self, product_filter: ProductFilter, page_request: PageRequest
    ) -> Slice[Product]:
        """Uncounted slice of products matching a filter."""
        await self._ensure_category(product_filter.category_id)

        spec = product_specification(product_filter)
        logger.debug("Filtering products slice", clauses=len(spec), page=page_request.page)

        return await self.repository.find_slice_matching(spec, page_request)

    async def filter_products_with_category_slice(
        self, product_filter: ProductFilter, page_request: PageRequest
    ) -> Slice[Product]:
        """Filtered slice with each product's category eagerly loaded."""
        await self._ensure_category(product_filter.category_id)

        spec = product_specification(product_filter)
        return await self.repository.find_all_slice_with_category(spec, page_request)

    # ------------------------------------------------------------------
    # Products of a category
    # ------------------------------------------------------------------

    async def get_products_by_category(self, category_id: int) -> list[Product]:
        """All products of a category.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        await self._ensure_category(category_id)
        return await self.repository.find_by_category_id(category_id)

    async def get_products_by_category_slice(
        self, category_id: int, page_request: PageRequest
    ) -> Slice[Product]:
        await self._ensure_category(category_id)
        return await self.repository.find_by_category_id_slice(category_id, page_request)

    async def filter_products_by_category_slice(
        self,
        category_id: int,
        page_request: PageRequest,
        name: str | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        in_stock: bool | None = None,
    ) -> Slice[Product]:
        """Slice of a category's products narrowed by optional filters."""
        await self._ensure_category(category_id)
        return await self.repository.find_by_category_with_filters_slice(
            category_id,
            page_request,
            name=name,
            min_price=min_price,
            max_price=max_price,
            in_stock=in_stock,
        )

    async def search_products_in_category_slice(
        self, category_id: int, term: str | None, page_request: PageRequest
    ) -> Slice[Product]:
        """Slice of a category's products matching ``term`` in name or description."""
        await self._ensure_category(category_id)
        return await self.repository.find_by_category_with_text_search_slice(
            category_id, term, page_request
        )

    async def get_products_by_category_in_stock_first_slice(
        self, category_id: int, page_request: PageRequest
    ) -> Slice[Product]:
        await self._ensure_category(category_id)
        return await self.repository.find_by_category_ordered_by_stock_status_slice(
            category_id, page_request
        )

    async def get_products_by_category_with_category_slice(
        self, category_id: int, page_request: PageRequest
    ) -> Slice[Product]:
        await self._ensure_category(category_id)
        return await self.repository.find_by_category_with_category_slice(
            category_id, page_request
        )


# ============================================================================
# Category Service
# ============================================================================


class CategoryService:
    """Service for category operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session
        self.repository = CategoryRepository(session)

    async def _get_or_raise(self, category_id: int) -> Category:
        category = await self.repository.get_by_id(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def get_all_categories(self) -> list[Category]:
        return await self.repository.find_all()

    async def get_categories_page(
        self, page_request: PageRequest
    ) -> Page[Category]:
        return await self.repository.find_all_page(page_request)

    async def get_category_by_id(self, category_id: int) -> Category:
        """Get a category.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        return await self._get_or_raise(category_id)

    async def create_category(self, category: Category) -> Category:
        category = await self.repository.save(category)
        logger.info("Category created", category_id=category.id, name=category.name)
        return category

    async def update_category(
        self, category_id: int, changes: Mapping[str, Any]
    ) -> Category:
        """Apply a partial update to a category.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        category = await self._get_or_raise(category_id)
        category = await self.repository.save(apply_category_update(category, changes))
        logger.info("Category updated", category_id=category_id)
        return category

    async def delete_category(self, category_id: int) -> None:
        """Delete a category.

        Products of the category are detached by the foreign key's
        ``ON DELETE SET NULL`` rule.

        Raises:
            CategoryNotFoundError: If the category does not exist.
        """
        category = await self._get_or_raise(category_id)
        await self.repository.delete(category)
        logger.info("Category deleted", category_id=category_id)

    async def search_categories_by_name(self, name: str) -> list[Category]:
        return await self.repository.find_by_name_containing(name)

    async def search_categories_by_name_page(
        self, name: str, page_request: PageRequest
    ) -> Page[Category]:
        return await self.repository.find_by_name_containing_page(name, page_request)

    async def search_categories_by_name_slice(
        self, name: str, page_request: PageRequest
    ) -> Slice[Category]:
        return await self.repository.find_by_name_containing_slice(name, page_request)

    async def filter_categories(
        self, category_filter: CategoryFilter, page_request: PageRequest
    ) -> Page[Category]:
        spec = category_specification(category_filter)
        return await self.repository.find_all_matching(spec, page_request)

    async def filter_categories_slice(
        self, category_filter: CategoryFilter, page_request: PageRequest
    ) -> Slice[Category]:
        spec = category_specification(category_filter)
        return await self.repository.find_slice_matching(spec, page_request)
