"""Category API endpoints.

Provides CRUD, search and filter endpoints for categories, and access to
the products of a category.
"""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.api.converters import (
    category_to_response,
    product_to_response,
    product_with_category_to_response,
    request_to_category,
)
from catalog_api.api.schemas import (
    CategoryFilterRequest,
    CategoryNameQuery,
    CategoryPagingParams,
    CategoryProductFilterQuery,
    CategoryProductSearchQuery,
    CategoryRequest,
    CategoryResponse,
    CategoryUpdateRequest,
    PageResponse,
    ProblemDetail,
    ProductPagingParams,
    ProductResponse,
    SliceResponse,
)
from catalog_api.catalog.service import CategoryService, ProductService
from catalog_api.infrastructure.database import get_session

router = APIRouter(prefix="/api/categories", tags=["Categories"])

NOT_FOUND = {404: {"model": ProblemDetail}}
BAD_REQUEST = {400: {"model": ProblemDetail}}


# ============================================================================
# Dependencies
# ============================================================================


def get_service(session: AsyncSession = Depends(get_session)) -> CategoryService:
    """Get category service bound to the request session."""
    return CategoryService(session)


def get_product_service(session: AsyncSession = Depends(get_session)) -> ProductService:
    """Get product service bound to the request session."""
    return ProductService(session)


ServiceDep = Annotated[CategoryService, Depends(get_service)]
ProductServiceDep = Annotated[ProductService, Depends(get_product_service)]
PagingDep = Annotated[CategoryPagingParams, Query()]
ProductPagingDep = Annotated[ProductPagingParams, Query()]


# ============================================================================
# Category Endpoints
# ============================================================================


@router.get("", response_model=list[CategoryResponse], summary="List all categories")
async def list_categories(service: ServiceDep) -> list[CategoryResponse]:
    return [category_to_response(c) for c in await service.get_all_categories()]


@router.get(
    "/paged",
    response_model=PageResponse[CategoryResponse],
    responses=BAD_REQUEST,
    summary="List categories page",
)
async def list_categories_paged(
    service: ServiceDep, paging: PagingDep
) -> PageResponse[CategoryResponse]:
    page = await service.get_categories_page(paging.to_page_request())
    return PageResponse[CategoryResponse].from_page(page.map(category_to_response))


@router.get("/search", response_model=list[CategoryResponse], summary="Search by name")
async def search_categories(
    service: ServiceDep, name: Annotated[str, Query(min_length=1)]
) -> list[CategoryResponse]:
    categories = await service.search_categories_by_name(name)
    return [category_to_response(c) for c in categories]


@router.get(
    "/search/paged",
    response_model=PageResponse[CategoryResponse],
    responses=BAD_REQUEST,
)
async def search_categories_paged(
    service: ServiceDep, query: Annotated[CategoryNameQuery, Query()]
) -> PageResponse[CategoryResponse]:
    page = await service.search_categories_by_name_page(
        query.name, query.to_page_request()
    )
    return PageResponse[CategoryResponse].from_page(page.map(category_to_response))


@router.get(
    "/search/slice",
    response_model=SliceResponse[CategoryResponse],
    responses=BAD_REQUEST,
)
async def search_categories_slice(
    service: ServiceDep, query: Annotated[CategoryNameQuery, Query()]
) -> SliceResponse[CategoryResponse]:
    result = await service.search_categories_by_name_slice(
        query.name, query.to_page_request()
    )
    return SliceResponse[CategoryResponse].from_slice(result.map(category_to_response))


@router.post(
    "/filter",
    response_model=PageResponse[CategoryResponse],
    responses=BAD_REQUEST,
    summary="Filter categories",
)
async def filter_categories(
    service: ServiceDep,
    request: Annotated[CategoryFilterRequest, Body()],
) -> PageResponse[CategoryResponse]:
    page = await service.filter_categories(request.to_filter(), request.to_page_request())
    return PageResponse[CategoryResponse].from_page(page.map(category_to_response))


@router.post(
    "/filter/slice",
    response_model=SliceResponse[CategoryResponse],
    responses=BAD_REQUEST,
    summary="Filter categories without counting",
)
async def filter_categories_slice(
    service: ServiceDep,
    request: Annotated[CategoryFilterRequest, Body()],
) -> SliceResponse[CategoryResponse]:
    result = await service.filter_categories_slice(
        request.to_filter(), request.to_page_request()
    )
    return SliceResponse[CategoryResponse].from_slice(result.map(category_to_response))


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    responses=NOT_FOUND,
    summary="Get category",
)
async def get_category(category_id: int, service: ServiceDep) -> CategoryResponse:
    return category_to_response(await service.get_category_by_id(category_id))


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses=BAD_REQUEST,
    summary="Create category",
)
async def create_category(
    request: CategoryRequest, service: ServiceDep
) -> CategoryResponse:
    category = await service.create_category(request_to_category(request))
    return category_to_response(category)


@router.put(
    "/{category_id}",
    response_model=CategoryResponse,
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Update category",
    description="Partial update: only fields present in the body are changed.",
)
async def update_category(
    category_id: int, request: CategoryUpdateRequest, service: ServiceDep
) -> CategoryResponse:
    category = await service.update_category(category_id, request.model_dump())
    return category_to_response(category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_FOUND,
    summary="Delete category",
)
async def delete_category(category_id: int, service: ServiceDep) -> Response:
    await service.delete_category(category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Products of a Category
# ============================================================================


@router.get(
    "/{category_id}/products",
    response_model=list[ProductResponse],
    responses=NOT_FOUND,
    summary="List products of a category",
)
async def list_category_products(
    category_id: int, service: ProductServiceDep
) -> list[ProductResponse]:
    products = await service.get_products_by_category(category_id)
    return [product_to_response(p) for p in products]


@router.get(
    "/{category_id}/products/paged",
    response_model=SliceResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
)
async def list_category_products_paged(
    category_id: int, service: ProductServiceDep, paging: ProductPagingDep
) -> SliceResponse[ProductResponse]:
    result = await service.get_products_by_category_slice(
        category_id, paging.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


@router.get(
    "/{category_id}/products/filter",
    response_model=SliceResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
)
async def filter_category_products(
    category_id: int,
    service: ProductServiceDep,
    query: Annotated[CategoryProductFilterQuery, Query()],
) -> SliceResponse[ProductResponse]:
    """Products of a category narrowed by optional filters.

    Args:
        category_id: Category to search in.
        service: Product service.
        query: Optional name substring, inclusive price bounds and
            availability flag, plus page and sort.

    Returns:
        Slice of matching products.
    """
    result = await service.filter_products_by_category_slice(
        category_id,
        query.to_page_request(),
        name=query.name,
        min_price=query.min_price,
        max_price=query.max_price,
        in_stock=query.in_stock,
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


@router.get(
    "/{category_id}/products/search",
    response_model=SliceResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
)
async def search_category_products(
    category_id: int,
    service: ProductServiceDep,
    query: Annotated[CategoryProductSearchQuery, Query()],
) -> SliceResponse[ProductResponse]:
    """Products of a category whose name or description contains ``term``."""
    result = await service.search_products_in_category_slice(
        category_id, query.term, query.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


@router.get(
    "/{category_id}/products/in-stock-first",
    response_model=SliceResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
)
async def list_category_products_in_stock_first(
    category_id: int, service: ProductServiceDep, paging: ProductPagingDep
) -> SliceResponse[ProductResponse]:
    result = await service.get_products_by_category_in_stock_first_slice(
        category_id, paging.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


@router.get(
    "/{category_id}/products/with-category",
    response_model=SliceResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
)
async def list_category_products_with_category(
    category_id: int, service: ProductServiceDep, paging: ProductPagingDep
) -> SliceResponse[ProductResponse]:
    """Products of a category with the category embedded in each item."""
    result = await service.get_products_by_category_with_category_slice(
        category_id, paging.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(
        result.map(product_with_category_to_response)
    )
