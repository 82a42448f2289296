"""API schemas for the catalog service.

Pydantic models for request/response validation and serialization.
"""

import base64
import binascii
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, TypeVar

from pydantic import (
    BaseModel,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)

from catalog_api.catalog.pagination import Page, PageRequest, Slice, Sort, SortDirection
from catalog_api.catalog.specifications import (
    CATEGORY_SORT_FIELDS,
    PRODUCT_SORT_FIELDS,
    CategoryFilter,
    ProductFilter,
)

T = TypeVar("T")

# Decimals travel as JSON numbers, not strings
Price = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

MAX_BASE64_FILE_BYTES = 5 * 1024 * 1024


# ============================================================================
# Common Schemas
# ============================================================================


class ProblemDetail(BaseModel):
    """Error response following RFC 9457 (problem details).

    All API errors follow this format for consistency.
    """

    type: str = Field(default="about:blank", description="Problem type URI")
    title: str = Field(..., description="Short summary of the problem")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: str | None = Field(default=None, description="Request path")
    timestamp: datetime = Field(..., description="When the error occurred (UTC)")
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )
    errors: dict[str, str] | None = Field(
        default=None, description="Field-level validation messages"
    )
    execution_id: int | None = Field(
        default=None, description="Export job execution, for failed exports"
    )


class PageResponse(BaseModel, Generic[T]):
    """Page of results with total counts."""

    items: list[T] = Field(..., description="Items on this page")
    page: int = Field(..., description="Page number (0-based)")
    size: int = Field(..., description="Requested page size")
    number_of_elements: int = Field(..., description="Items on this page")
    total_elements: int = Field(..., description="Total matching items")
    total_pages: int = Field(..., description="Total number of pages")
    has_next: bool
    has_previous: bool
    first: bool
    last: bool

    @classmethod
    def from_page(cls, page: Page[Any]) -> "PageResponse[Any]":
        """Build from a repository page."""
        return cls(
            items=page.items,
            page=page.page,
            size=page.size,
            number_of_elements=page.number_of_elements,
            total_elements=page.total_elements,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_previous=page.has_previous,
            first=page.is_first,
            last=page.is_last,
        )


class SliceResponse(BaseModel, Generic[T]):
    """Page of results without total counts."""

    items: list[T] = Field(..., description="Items on this page")
    page: int = Field(..., description="Page number (0-based)")
    size: int = Field(..., description="Requested page size")
    number_of_elements: int = Field(..., description="Items on this page")
    has_next: bool
    has_previous: bool
    first: bool
    last: bool

    @classmethod
    def from_slice(cls, result: Slice[Any]) -> "SliceResponse[Any]":
        """Build from a repository slice."""
        return cls(
            items=result.items,
            page=result.page,
            size=result.size,
            number_of_elements=result.number_of_elements,
            has_next=result.has_next,
            has_previous=result.has_previous,
            first=result.is_first,
            last=result.is_last,
        )


class PagingParams(BaseModel):
    """Pagination and sort parameters shared by filters and paged endpoints."""

    page: int = Field(default=0, ge=0, description="Page number (0-based)")
    size: int = Field(default=10, ge=1, le=100, description="Items per page")
    sort_by: str = Field(default="id", max_length=50, description="Sort field")
    sort_direction: SortDirection = Field(
        default=SortDirection.ASC, description="Sort direction"
    )

    @field_validator("sort_direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    def to_page_request(self) -> PageRequest:
        """Convert to a repository page request."""
        return PageRequest.of(
            self.page, self.size, Sort.by(self.sort_direction, self.sort_by)
        )


class ProductPagingParams(PagingParams):
    """Paging parameters for product listings."""

    @field_validator("sort_by")
    @classmethod
    def _check_sort_field(cls, value: str) -> str:
        if value not in PRODUCT_SORT_FIELDS:
            raise ValueError(
                f"Unsupported sort field '{value}'. Allowed: {', '.join(PRODUCT_SORT_FIELDS)}"
            )
        return value


class CategoryPagingParams(PagingParams):
    """Paging parameters for category listings."""

    @field_validator("sort_by")
    @classmethod
    def _check_sort_field(cls, value: str) -> str:
        if value not in CATEGORY_SORT_FIELDS:
            raise ValueError(
                f"Unsupported sort field '{value}'. Allowed: {', '.join(CATEGORY_SORT_FIELDS)}"
            )
        return value


# FastAPI only spreads a model over the query string when it is the sole
# query parameter, so extra query fields live on paging subclasses.


class ProductNameQuery(ProductPagingParams):
    """Name search with paging."""

    name: str = Field(..., min_length=1, max_length=255, description="Name substring")


class ProductPriceQuery(ProductPagingParams):
    """Price ceiling with paging."""

    price: Decimal = Field(..., gt=0, description="Exclusive upper price bound")


class CategoryNameQuery(CategoryPagingParams):
    """Category name search with paging."""

    name: str = Field(..., min_length=1, max_length=255, description="Name substring")


class CategoryProductFilterQuery(ProductPagingParams):
    """Optional narrowing of a category's products, with paging."""

    name: str | None = Field(default=None, max_length=255)
    min_price: Decimal | None = Field(default=None, ge=0)
    max_price: Decimal | None = Field(default=None, ge=0)
    in_stock: bool | None = None


class CategoryProductSearchQuery(ProductPagingParams):
    """Text search over a category's products, with paging."""

    term: str | None = Field(
        default=None, max_length=255, description="Matched against name or description"
    )


# ============================================================================
# Category Schemas
# ============================================================================


def _not_blank(value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise ValueError("must not be blank")
    return value


class CategoryRequest(BaseModel):
    """Request to create a category."""

    name: str = Field(..., max_length=255, description="Category name")
    description: str | None = Field(default=None, description="Category description")

    _check_name = field_validator("name")(_not_blank)


class CategoryUpdateRequest(BaseModel):
    """Partial category update; only supplied fields are changed."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None

    _check_name = field_validator("name")(_not_blank)


class CategoryResponse(BaseModel):
    """Category representation."""

    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategorySummary(BaseModel):
    """Category reference embedded in a product."""

    id: int
    name: str


class CategoryFilterRequest(CategoryPagingParams):
    """Category filter criteria with pagination."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None

    def to_filter(self) -> CategoryFilter:
        """Convert to a query filter."""
        return CategoryFilter(
            name=self.name,
            description=self.description,
            created_after=self.created_after,
            created_before=self.created_before,
            updated_after=self.updated_after,
            updated_before=self.updated_before,
        )


# ============================================================================
# Product Schemas
# ============================================================================


def decoded_base64_size(value: str) -> int:
    """Size in bytes of the payload encoded in a base64 string.

    A ``data:...;base64,`` prefix is ignored.

    Args:
        value: Base64 text, optionally a data URI.

    Returns:
        Decoded size in bytes.
    """
    payload = value.split(",", 1)[1] if "," in value else value
    payload = payload.strip()
    padding = 2 if payload.endswith("==") else 1 if payload.endswith("=") else 0
    return (len(payload) * 3) // 4 - padding


class _ProductFields(BaseModel):
    _check_name = field_validator("name", check_fields=False)(_not_blank)

    @field_validator("base64_file", check_fields=False)
    @classmethod
    def _check_file(cls, value: str | None) -> str | None:
        if not value:
            return value
        payload = value.split(",", 1)[1] if "," in value else value
        try:
            base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("must be valid base64") from e
        if decoded_base64_size(value) > MAX_BASE64_FILE_BYTES:
            raise ValueError("File size must not exceed 5MB")
        return value


class ProductRequest(_ProductFields):
    """Request to create a product."""

    name: str = Field(..., max_length=255, description="Product name")
    description: str | None = Field(default=None, description="Product description")
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    in_stock: bool = Field(default=False, description="Availability flag")
    stock: int = Field(default=0, ge=0, description="Quantity on hand")
    category_id: int | None = Field(default=None, gt=0, description="Owning category")
    base64_file: str | None = Field(
        default=None, description="Optional base64 attachment (max 5MB decoded)"
    )


class ProductUpdateRequest(_ProductFields):
    """Partial product update; only supplied fields are changed."""

    name: str | None = Field(default=None, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    in_stock: bool | None = None
    stock: int | None = Field(default=None, ge=0)
    category_id: int | None = Field(default=None, gt=0)
    base64_file: str | None = None


class ProductResponse(BaseModel):
    """Product representation."""

    id: int
    name: str
    description: str | None = None
    price: Price
    in_stock: bool
    stock: int
    category_id: int | None = None
    category: CategorySummary | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductFilterRequest(ProductPagingParams):
    """Product filter criteria with pagination.

    At least one of name, description, category_id, min_price or
    max_price must be supplied.
    """

    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    category_id: int | None = Field(default=None, gt=0)
    min_price: Decimal | None = Field(default=None, ge=0)
    max_price: Decimal | None = Field(default=None, ge=0)
    in_stock: bool | None = None
    min_stock: int | None = Field(default=None, ge=0)
    created_after: datetime | None = None
    created_before: datetime | None = None
    updated_after: datetime | None = None
    updated_before: datetime | None = None

    @model_validator(mode="after")
    def _check_at_least_one_field(self) -> "ProductFilterRequest":
        required_any = (
            self.name,
            self.description,
            self.category_id,
            self.min_price,
            self.max_price,
        )
        present = [
            v for v in required_any
            if v is not None and not (isinstance(v, str) and not v.strip())
        ]
        if not present:
            raise ValueError("At least one filter field must be provided")
        return self

    def to_filter(self) -> ProductFilter:
        """Convert to a query filter."""
        return ProductFilter(
            name=self.name,
            description=self.description,
            category_id=self.category_id,
            min_price=self.min_price,
            max_price=self.max_price,
            in_stock=self.in_stock,
            min_stock=self.min_stock,
            created_after=self.created_after,
            created_before=self.created_before,
            updated_after=self.updated_after,
            updated_before=self.updated_before,
        )


# ============================================================================
# Export Schemas
# ============================================================================


class StepExecutionResponse(BaseModel):
    """Counters of one export step."""

    step_name: str
    status: str
    read_count: int
    write_count: int
    filter_count: int
    read_skip_count: int
    process_skip_count: int
    write_skip_count: int
    commit_count: int
    rollback_count: int
    start_time: datetime | None = None
    end_time: datetime | None = None
    failures: list[str] = Field(default_factory=list)


class ExportJobResponse(BaseModel):
    """Status and counters of an export job execution."""

    execution_id: int
    job_name: str
    status: str
    file_path: str
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: float | None = None
    read_count: int
    write_count: int
    skip_count: int
    failures: list[str] = Field(default_factory=list)
    steps: list[StepExecutionResponse] = Field(default_factory=list)
