"""Repositories for catalog database operations.

Every paginated lookup comes in two flavours:

* ``*_page`` methods return a ``Page`` and always issue a COUNT query;
* ``*_slice`` methods return a ``Slice``, read ``size + 1`` rows to
  detect a following page and never issue a COUNT query.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from catalog_api.catalog.models import Category, Product
from catalog_api.catalog.pagination import Page, PageRequest, Slice
from catalog_api.catalog.specifications import (
    CATEGORY_SORT_COLUMNS,
    PRODUCT_SORT_COLUMNS,
    ProductFilter,
    Specification,
    contains_ignore_case,
    order_by_clauses,
    product_specification,
)

M = TypeVar("M", Product, Category)


class _PagingRepository(Generic[M]):
    """Shared CRUD and pagination helpers."""

    model: type[M]
    sort_columns: Mapping[str, Any]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, entity: M) -> M:
        """Insert or update an entity and flush it.

        Args:
            entity: Entity to save.

        Returns:
            Saved entity with generated columns populated.
        """
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def save_all(self, entities: list[M]) -> list[M]:
        """Save multiple entities."""
        self.session.add_all(entities)
        await self.session.flush()
        return entities

    async def get_by_id(self, entity_id: int) -> M | None:
        """Get entity by ID, or None."""
        return await self.session.get(self.model, entity_id)

    async def exists_by_id(self, entity_id: int) -> bool:
        """Check whether an entity with this ID exists."""
        query = select(exists().where(self.model.id == entity_id))
        result = await self.session.execute(query)
        return bool(result.scalar())

    async def delete(self, entity: M) -> None:
        """Delete an entity."""
        await self.session.delete(entity)
        await self.session.flush()

    async def count(self, spec: Specification | None = None) -> int:
        """Count entities matching an optional specification."""
        query = select(func.count()).select_from(self.model)
        if spec is not None:
            query = spec.apply(query)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def find_all(self, spec: Specification | None = None) -> Sequence[M]:
        """List all entities ordered by id."""
        query = select(self.model)
        if spec is not None:
            query = spec.apply(query)
        result = await self.session.execute(query.order_by(self.model.id))
        return result.scalars().all()

    async def find_all_page(self, page_request: PageRequest) -> Page[M]:
        """Counted page over all entities."""
        return await self._fetch_page(select(self.model), page_request)

    async def find_all_matching(
        self, spec: Specification, page_request: PageRequest
    ) -> Page[M]:
        """Counted page of entities matching a specification."""
        return await self._fetch_page(spec.apply(select(self.model)), page_request)

    async def find_slice_matching(
        self, spec: Specification, page_request: PageRequest
    ) -> Slice[M]:
        """Uncounted slice of entities matching a specification."""
        return await self._fetch_slice(spec.apply(select(self.model)), page_request)

    # ------------------------------------------------------------------
    # Pagination helpers
    # ------------------------------------------------------------------

    def _ordered(
        self,
        query: Select[Any],
        page_request: PageRequest,
        leading: Sequence[Any] = (),
    ) -> Select[Any]:
        return query.order_by(
            *leading, *order_by_clauses(page_request.sort, self.sort_columns)
        )

    async def _fetch_page(
        self,
        query: Select[Any],
        page_request: PageRequest,
        leading: Sequence[Any] = (),
    ) -> Page[M]:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        rows_query = (
            self._ordered(query, page_request, leading)
            .limit(page_request.size)
            .offset(page_request.offset)
        )
        result = await self.session.execute(rows_query)
        return Page(
            items=list(result.scalars().unique().all()),
            page=page_request.page,
            size=page_request.size,
            total_elements=total,
        )

    async def _fetch_slice(
        self,
        query: Select[Any],
        page_request: PageRequest,
        leading: Sequence[Any] = (),
    ) -> Slice[M]:
        rows_query = (
            self._ordered(query, page_request, leading)
            .limit(page_request.size + 1)
            .offset(page_request.offset)
        )
        result = await self.session.execute(rows_query)
        rows = list(result.scalars().unique().all())
        return Slice(
            items=rows[: page_request.size],
            page=page_request.page,
            size=page_request.size,
            has_next=len(rows) > page_request.size,
        )


class ProductRepository(_PagingRepository[Product]):
    """Repository for Product database operations.

    Example usage:
        async with async_session_factory() as session:
            repo = ProductRepository(session)
            page = await repo.find_all_matching(
                product_specification(ProductFilter(min_price=Decimal("10"))),
                PageRequest.of(0, 20),
            )
    """

    model = Product
    sort_columns = PRODUCT_SORT_COLUMNS

    # ------------------------------------------------------------------
    # Derived lookups
    # ------------------------------------------------------------------

    @staticmethod
    def _name_contains(name: str) -> Specification:
        return Specification([contains_ignore_case(Product.name, name)])

    @staticmethod
    def _price_less_than(price: Decimal) -> Specification:
        return Specification([Product.price < price])

    @staticmethod
    def _in_stock(in_stock: bool) -> Specification:
        return Specification([Product.in_stock == in_stock])

    async def find_by_name_containing(self, name: str) -> Sequence[Product]:
        """Products whose name contains ``name`` (case-insensitive)."""
        return await self.find_all(self._name_contains(name))

    async def find_by_name_containing_page(
        self, name: str, page_request: PageRequest
    ) -> Page[Product]:
        return await self.find_all_matching(self._name_contains(name), page_request)

    async def find_by_name_containing_slice(
        self, name: str, page_request: PageRequest
    ) -> Slice[Product]:
        return await self.find_slice_matching(self._name_contains(name), page_request)

    async def find_by_price_less_than(self, price: Decimal) -> Sequence[Product]:
        """Products strictly cheaper than ``price``."""
        return await self.find_all(self._price_less_than(price))

    async def find_by_price_less_than_page(
        self, price: Decimal, page_request: PageRequest
    ) -> Page[Product]:
        return await self.find_all_matching(self._price_less_than(price), page_request)

    async def find_by_price_less_than_slice(
        self, price: Decimal, page_request: PageRequest
    ) -> Slice[Product]:
        return await self.find_slice_matching(self._price_less_than(price), page_request)

    async def find_by_in_stock(self, in_stock: bool) -> Sequence[Product]:
        """Products with the given availability flag."""
        return await self.find_all(self._in_stock(in_stock))

    async def find_by_in_stock_page(
        self, in_stock: bool, page_request: PageRequest
    ) -> Page[Product]:
        return await self.find_all_matching(self._in_stock(in_stock), page_request)

    async def find_by_in_stock_slice(
        self, in_stock: bool, page_request: PageRequest
    ) -> Slice[Product]:
        return await self.find_slice_matching(self._in_stock(in_stock), page_request)

    # ------------------------------------------------------------------
    # Category queries
    # ------------------------------------------------------------------

    async def find_by_category_id(self, category_id: int) -> Sequence[Product]:
        """All products of a category, ordered by id."""
        return await self.find_all(Specification([Product.category_id == category_id]))

    async def find_by_category_id_slice(
        self, category_id: int, page_request: PageRequest
    ) -> Slice[Product]:
        """Slice of the products of a category."""
        query = select(Product).where(Product.category_id == category_id)
        return await self._fetch_slice(query, page_request)

    async def find_by_category_with_filters_slice(
        self,
        category_id: int,
        page_request: PageRequest,
        name: str | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        in_stock: bool | None = None,
    ) -> Slice[Product]:
        """Slice of a category's products narrowed by optional filters.

        Args:
            category_id: Category to search in.
            page_request: Page and sort.
            name: Optional case-insensitive name substring.
            min_price: Optional inclusive lower price bound.
            max_price: Optional inclusive upper price bound.
            in_stock: Optional availability flag.

        Returns:
            Slice of matching products.
        """
        spec = product_specification(
            ProductFilter(
                category_id=category_id,
                name=name,
                min_price=min_price,
                max_price=max_price,
                in_stock=in_stock,
            )
        )
        return await self.find_slice_matching(spec, page_request)

    async def find_by_category_with_text_search_slice(
        self,
        category_id: int,
        search_term: str | None,
        page_request: PageRequest,
    ) -> Slice[Product]:
        """Slice of a category's products matching a term in name OR description."""
        query = select(Product).where(Product.category_id == category_id)
        if search_term is not None and search_term.strip():
            query = query.where(
                or_(
                    contains_ignore_case(Product.name, search_term),
                    contains_ignore_case(Product.description, search_term),
                )
            )
        return await self._fetch_slice(query, page_request)

    async def find_by_category_ordered_by_stock_status_slice(
        self, category_id: int, page_request: PageRequest
    ) -> Slice[Product]:
        """Slice of a category's products, in-stock items first."""
        query = select(Product).where(Product.category_id == category_id)
        return await self._fetch_slice(
            query, page_request, leading=[Product.in_stock.desc()]
        )

    async def find_by_category_with_category_slice(
        self, category_id: int, page_request: PageRequest
    ) -> Slice[Product]:
        """Slice of a category's products with the category eagerly joined."""
        query = (
            select(Product)
            .join(Product.category)
            .where(Category.id == category_id)
            .options(contains_eager(Product.category))
        )
        return await self._fetch_slice(query, page_request)

    async def find_all_slice_with_category(
        self, spec: Specification, page_request: PageRequest
    ) -> Slice[Product]:
        """Slice matching ``spec`` with each product's category eagerly joined."""
        query = spec.apply(
            select(Product)
            .outerjoin(Product.category)
            .options(contains_eager(Product.category))
        )
        return await self._fetch_slice(query, page_request)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def find_chunk(self, offset: int, limit: int) -> Sequence[Product]:
        """Read ``limit`` products ordered by id, starting at ``offset``."""
        query = select(Product).order_by(Product.id).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return result.scalars().all()


class CategoryRepository(_PagingRepository[Category]):
    """Repository for Category database operations."""

    model = Category
    sort_columns = CATEGORY_SORT_COLUMNS

    @staticmethod
    def _name_contains(name: str) -> Specification:
        return Specification([contains_ignore_case(Category.name, name)])

    async def find_by_name_containing(self, name: str) -> Sequence[Category]:
        """Categories whose name contains ``name`` (case-insensitive)."""
        return await self.find_all(self._name_contains(name))

    async def find_by_name_containing_page(
        self, name: str, page_request: PageRequest
    ) -> Page[Category]:
        return await self.find_all_matching(self._name_contains(name), page_request)

    async def find_by_name_containing_slice(
        self, name: str, page_request: PageRequest
    ) -> Slice[Category]:
        return await self.find_slice_matching(self._name_contains(name), page_request)
