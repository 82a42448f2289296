"""Pagination primitives.

``PageRequest`` describes which rows to fetch and in what order.
``Page`` carries a total count (one extra COUNT query); ``Slice`` only
knows whether another page exists (fetched by over-reading one row).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class SortDirection(str, Enum):
    """Sort order."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: "str | SortDirection") -> "SortDirection":
        """Parse a direction case-insensitively ("ASC", "desc", ...)."""
        if isinstance(value, SortDirection):
            return value
        return cls(value.lower())


@dataclass(frozen=True)
class Sort:
    """Single-column sort order."""

    field: str = "id"
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def by(cls, direction: "str | SortDirection", field: str) -> "Sort":
        """Create a sort on ``field`` in ``direction``."""
        return cls(field=field, direction=SortDirection.parse(direction))

    @property
    def is_descending(self) -> bool:
        """Whether rows are sorted in descending order."""
        return self.direction is SortDirection.DESC


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page request.

    Attributes:
        page: Page number (0-based).
        size: Items per page.
        sort: Sort order.
    """

    page: int = 0
    size: int = 10
    sort: Sort = field(default_factory=Sort)

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError("Page index must not be less than zero")
        if self.size < 1:
            raise ValueError("Page size must not be less than one")

    @classmethod
    def of(cls, page: int, size: int, sort: Sort | None = None) -> "PageRequest":
        """Create a page request."""
        return cls(page=page, size=size, sort=sort or Sort())

    @property
    def offset(self) -> int:
        """Row offset of the first item on this page."""
        return self.page * self.size

    def with_sort(self, sort: Sort) -> "PageRequest":
        """Copy of this request with a different sort."""
        return replace(self, sort=sort)


@dataclass
class Slice(Generic[T]):
    """A page of results without a total count.

    Attributes:
        items: Items on this page.
        page: Page number (0-based).
        size: Requested page size.
        has_next: Whether at least one more item exists.
    """

    items: list[T]
    page: int
    size: int
    has_next: bool

    @property
    def number_of_elements(self) -> int:
        """Number of items on this page."""
        return len(self.items)

    @property
    def has_previous(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 0

    @property
    def is_first(self) -> bool:
        return not self.has_previous

    @property
    def is_last(self) -> bool:
        return not self.has_next

    def map(self, fn: Callable[[T], R]) -> "Slice[R]":
        """Transform the items, keeping the paging metadata."""
        return Slice(
            items=[fn(item) for item in self.items],
            page=self.page,
            size=self.size,
            has_next=self.has_next,
        )


@dataclass
class Page(Generic[T]):
    """A page of results with total element count.

    Attributes:
        items: Items on this page.
        page: Page number (0-based).
        size: Requested page size.
        total_elements: Total matching items across all pages.
    """

    items: list[T]
    page: int
    size: int
    total_elements: int

    @property
    def number_of_elements(self) -> int:
        """Number of items on this page."""
        return len(self.items)

    @property
    def total_pages(self) -> int:
        """Calculate total pages."""
        return (self.total_elements + self.size - 1) // self.size

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        """Check if there's a previous page."""
        return self.page > 0

    @property
    def is_first(self) -> bool:
        return not self.has_previous

    @property
    def is_last(self) -> bool:
        return not self.has_next

    def map(self, fn: Callable[[T], R]) -> "Page[R]":
        """Transform the items, keeping the paging metadata."""
        return Page(
            items=[fn(item) for item in self.items],
            page=self.page,
            size=self.size,
            total_elements=self.total_elements,
        )
