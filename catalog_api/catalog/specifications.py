"""Dynamic query construction for catalog filters.

A ``Specification`` is an ordered list of optional SQLAlchemy clauses
that are ANDed together when applied to a select. Filter objects are
translated clause by clause; a field that is ``None`` (or a blank
string) contributes nothing, so an empty filter matches every row.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, func, true

from catalog_api.catalog.models import Category, Product
from catalog_api.catalog.pagination import Sort
from catalog_api.domain.exceptions import InvalidSortFieldError

LIKE_ESCAPE = "\\"


# ============================================================================
# Filters
# ============================================================================


@dataclass
class ProductFilter:
    """Filter parameters for product queries.

    Attributes:
        name: Case-insensitive substring of the name.
        description: Case-insensitive substring of the description.
        category_id: Owning category.
        min_price: Inclusive lower price bound.
        max_price: Inclusive upper price bound.
        in_stock: Availability flag.
        min_stock: Minimum quantity on hand.
        created_after: Inclusive lower bound on created_at.
        created_before: Inclusive upper bound on created_at.
        updated_after: Inclusive lower bound on updated_at.
        updated_before: Inclusive upper bound on updated_at.
    """

    name: str | None = None
    description: str | None = None
    category_id: int | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    in_stock: bool | None = None
    min_stock: int | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None


@dataclass
class CategoryFilter:
    """Filter parameters for category queries."""

    name: str | None = None
    description: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None


# ============================================================================
# Specification
# ============================================================================


class Specification:
    """Composable conjunction of SQLAlchemy clauses.

    Example usage:
        spec = Specification().where(Product.in_stock.is_(True))
        spec = spec.and_(product_specification(ProductFilter(min_price=10)))
        query = spec.apply(select(Product))
    """

    def __init__(self, clauses: Iterable[ColumnElement[bool]] = ()) -> None:
        self._clauses: tuple[ColumnElement[bool], ...] = tuple(clauses)

    @property
    def clauses(self) -> tuple[ColumnElement[bool], ...]:
        """Clauses in the order they were added."""
        return self._clauses

    def is_empty(self) -> bool:
        """Check whether the specification matches everything."""
        return not self._clauses

    def where(self, clause: ColumnElement[bool]) -> "Specification":
        """Return a new specification with ``clause`` added."""
        return Specification((*self._clauses, clause))

    def and_(self, other: "Specification") -> "Specification":
        """Return the conjunction of this and ``other``."""
        return Specification((*self._clauses, *other.clauses))

    def to_predicate(self) -> ColumnElement[bool]:
        """Render as a single boolean expression (``true()`` when empty)."""
        if not self._clauses:
            return true()
        if len(self._clauses) == 1:
            return self._clauses[0]
        return and_(*self._clauses)

    def apply(self, query: Select[Any]) -> Select[Any]:
        """Add the predicate to ``query``."""
        if not self._clauses:
            return query
        return query.where(self.to_predicate())

    def __len__(self) -> int:
        return len(self._clauses)

    def __repr__(self) -> str:
        return f"<Specification(clauses={len(self._clauses)})>"


def _has_text(value: str | None) -> bool:
    return value is not None and value.strip() != ""


def _escape_like(term: str) -> str:
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains_ignore_case(column: Any, term: str) -> ColumnElement[bool]:
    """``LOWER(column) LIKE %term%`` with wildcards in ``term`` escaped."""
    pattern = f"%{_escape_like(term.strip().lower())}%"
    return func.lower(column).like(pattern, escape=LIKE_ESCAPE)


def _date_range(
    column: Any,
    after: datetime | None,
    before: datetime | None,
) -> list[ColumnElement[bool]]:
    clauses = []
    if after is not None:
        clauses.append(column >= after)
    if before is not None:
        clauses.append(column <= before)
    return clauses


def product_specification(product_filter: ProductFilter) -> Specification:
    """Build the product specification for a filter.

    Args:
        product_filter: Filter criteria.

    Returns:
        Specification ANDing every criterion that is set.
    """
    clauses: list[ColumnElement[bool]] = []

    if _has_text(product_filter.name):
        clauses.append(contains_ignore_case(Product.name, product_filter.name))  # type: ignore[arg-type]

    if _has_text(product_filter.description):
        clauses.append(
            contains_ignore_case(Product.description, product_filter.description)  # type: ignore[arg-type]
        )

    if product_filter.category_id is not None:
        clauses.append(Product.category_id == product_filter.category_id)

    if product_filter.min_price is not None:
        clauses.append(Product.price >= product_filter.min_price)

    if product_filter.max_price is not None:
        clauses.append(Product.price <= product_filter.max_price)

    if product_filter.in_stock is not None:
        clauses.append(Product.in_stock == product_filter.in_stock)

    if product_filter.min_stock is not None:
        clauses.append(Product.stock >= product_filter.min_stock)

    clauses.extend(
        _date_range(Product.created_at, product_filter.created_after, product_filter.created_before)
    )
    clauses.extend(
        _date_range(Product.updated_at, product_filter.updated_after, product_filter.updated_before)
    )

    return Specification(clauses)


def category_specification(category_filter: CategoryFilter) -> Specification:
    """Build the category specification for a filter."""
    clauses: list[ColumnElement[bool]] = []

    if _has_text(category_filter.name):
        clauses.append(contains_ignore_case(Category.name, category_filter.name))  # type: ignore[arg-type]

    if _has_text(category_filter.description):
        clauses.append(
            contains_ignore_case(Category.description, category_filter.description)  # type: ignore[arg-type]
        )

    clauses.extend(
        _date_range(Category.created_at, category_filter.created_after, category_filter.created_before)
    )
    clauses.extend(
        _date_range(Category.updated_at, category_filter.updated_after, category_filter.updated_before)
    )

    return Specification(clauses)


# ============================================================================
# Sorting
# ============================================================================


PRODUCT_SORT_COLUMNS: Mapping[str, Any] = {
    "id": Product.id,
    "name": Product.name,
    "price": Product.price,
    "stock": Product.stock,
    "in_stock": Product.in_stock,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}

CATEGORY_SORT_COLUMNS: Mapping[str, Any] = {
    "id": Category.id,
    "name": Category.name,
    "created_at": Category.created_at,
    "updated_at": Category.updated_at,
}

PRODUCT_SORT_FIELDS: tuple[str, ...] = tuple(PRODUCT_SORT_COLUMNS)
CATEGORY_SORT_FIELDS: tuple[str, ...] = tuple(CATEGORY_SORT_COLUMNS)


def order_by_clauses(sort: Sort, columns: Mapping[str, Any]) -> list[Any]:
    """Translate a sort into ORDER BY clauses.

    The ``id`` column is appended as a tiebreaker so that page
    boundaries are stable.

    Args:
        sort: Requested sort.
        columns: Allow-list of sortable columns keyed by field name.

    Returns:
        ORDER BY clauses.

    Raises:
        InvalidSortFieldError: If the field is not sortable.
    """
    column = columns.get(sort.field)
    if column is None:
        raise InvalidSortFieldError(sort.field, sorted(columns))

    ordered = [column.desc() if sort.is_descending else column.asc()]
    if sort.field != "id":
        ordered.append(columns["id"].asc())
    return ordered
