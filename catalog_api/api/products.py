"""Product API endpoints.

Provides CRUD, search and filter endpoints for products. List endpoints
come in plain, counted (``/paged``) and uncounted (``/slice``) forms.
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_api.api.converters import (
    product_to_response,
    product_with_category_to_response,
    request_to_product,
)
from catalog_api.api.schemas import (
    PageResponse,
    ProblemDetail,
    ProductFilterRequest,
    ProductNameQuery,
    ProductPagingParams,
    ProductPriceQuery,
    ProductRequest,
    ProductResponse,
    ProductUpdateRequest,
    SliceResponse,
)
from catalog_api.catalog.service import ProductService
from catalog_api.infrastructure.database import get_session

router = APIRouter(prefix="/api/products", tags=["Products"])

NOT_FOUND = {404: {"model": ProblemDetail}}
BAD_REQUEST = {400: {"model": ProblemDetail}}


# ============================================================================
# Dependencies
# ============================================================================


def get_service(session: AsyncSession = Depends(get_session)) -> ProductService:
    """Get product service bound to the request session."""
    return ProductService(session)


ServiceDep = Annotated[ProductService, Depends(get_service)]
PagingDep = Annotated[ProductPagingParams, Query()]


# ============================================================================
# CRUD Endpoints
# ============================================================================


@router.get(
    "",
    response_model=list[ProductResponse],
    responses={204: {"description": "Catalog is empty"}},
    summary="List all products",
)
async def list_products(service: ServiceDep) -> list[ProductResponse] | Response:
    """List every product ordered by id.

    Returns 204 No Content when there are no products.
    """
    products = await service.get_all_products()
    if not products:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [product_to_response(p) for p in products]


@router.get(
    "/paged",
    response_model=PageResponse[ProductResponse],
    responses=BAD_REQUEST,
    summary="List products page",
)
async def list_products_paged(
    service: ServiceDep, paging: PagingDep
) -> PageResponse[ProductResponse]:
    page = await service.get_products_page(paging.to_page_request())
    return PageResponse[ProductResponse].from_page(page.map(product_to_response))


# ============================================================================
# Search Endpoints
# ============================================================================


@router.get("/search", response_model=list[ProductResponse], summary="Search by name")
async def search_products(
    service: ServiceDep, name: Annotated[str, Query(min_length=1)]
) -> list[ProductResponse]:
    """Products whose name contains ``name``, ignoring case."""
    products = await service.search_products_by_name(name)
    return [product_to_response(p) for p in products]


@router.get(
    "/search/paged",
    response_model=PageResponse[ProductResponse],
    responses=BAD_REQUEST,
)
async def search_products_paged(
    service: ServiceDep, query: Annotated[ProductNameQuery, Query()]
) -> PageResponse[ProductResponse]:
    page = await service.search_products_by_name_page(
        query.name, query.to_page_request()
    )
    return PageResponse[ProductResponse].from_page(page.map(product_to_response))


@router.get(
    "/search/slice",
    response_model=SliceResponse[ProductResponse],
    responses=BAD_REQUEST,
)
async def search_products_slice(
    service: ServiceDep, query: Annotated[ProductNameQuery, Query()]
) -> SliceResponse[ProductResponse]:
    result = await service.search_products_by_name_slice(
        query.name, query.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


@router.get(
    "/under-price",
    response_model=list[ProductResponse],
    summary="Products cheaper than a price",
)
async def products_under_price(
    service: ServiceDep, price: Annotated[Decimal, Query(gt=0)]
) -> list[ProductResponse]:
    products = await service.get_products_under_price(price)
    return [product_to_response(p) for p in products]


@router.get(
    "/under-price/paged",
    response_model=PageResponse[ProductResponse],
    responses=BAD_REQUEST,
)
async def products_under_price_paged(
    service: ServiceDep, query: Annotated[ProductPriceQuery, Query()]
) -> PageResponse[ProductResponse]:
    page = await service.get_products_under_price_page(
        query.price, query.to_page_request()
    )
    return PageResponse[ProductResponse].from_page(page.map(product_to_response))


@router.get(
    "/under-price/slice",
    response_model=SliceResponse[ProductResponse],
    responses=BAD_REQUEST,
)
async def products_under_price_slice(
    service: ServiceDep, query: Annotated[ProductPriceQuery, Query()]
) -> SliceResponse[ProductResponse]:
    result = await service.get_products_under_price_slice(
        query.price, query.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


@router.get("/in-stock", response_model=list[ProductResponse], summary="Products in stock")
async def products_in_stock(service: ServiceDep) -> list[ProductResponse]:
    products = await service.get_products_in_stock()
    return [product_to_response(p) for p in products]


@router.get(
    "/in-stock/paged",
    response_model=PageResponse[ProductResponse],
    responses=BAD_REQUEST,
)
async def products_in_stock_paged(
    service: ServiceDep, paging: PagingDep
) -> PageResponse[ProductResponse]:
    page = await service.get_products_in_stock_page(paging.to_page_request())
    return PageResponse[ProductResponse].from_page(page.map(product_to_response))


@router.get(
    "/in-stock/slice",
    response_model=SliceResponse[ProductResponse],
    responses=BAD_REQUEST,
)
async def products_in_stock_slice(
    service: ServiceDep, paging: PagingDep
) -> SliceResponse[ProductResponse]:
    result = await service.get_products_in_stock_slice(paging.to_page_request())
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


# ============================================================================
# Filter Endpoints
# ============================================================================


@router.post(
    "/filter",
    response_model=PageResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Filter products",
    description="Counted page of products matching every supplied criterion.",
)
async def filter_products(
    service: ServiceDep,
    request: Annotated[ProductFilterRequest, Body()],
) -> PageResponse[ProductResponse]:
    """Filter products.

    Args:
        service: Product service.
        request: Filter criteria, page and sort.

    Returns:
        Page of matching products with totals.
    """
    page = await service.filter_products(request.to_filter(), request.to_page_request())
    return PageResponse[ProductResponse].from_page(page.map(product_to_response))


@router.post(
    "/filter/slice",
    response_model=SliceResponse[ProductResponse],
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Filter products without counting",
)
async def filter_products_slice(
    service: ServiceDep,
    request: Annotated[ProductFilterRequest, Body()],
    include_category: Annotated[bool, Query()] = False,
) -> SliceResponse[ProductResponse]:
    """Filter products into a slice.

    Args:
        service: Product service.
        request: Filter criteria, page and sort.
        include_category: Join each product's category into the response.

    Returns:
        Slice of matching products, without totals.
    """
    if include_category:
        result = await service.filter_products_with_category_slice(
            request.to_filter(), request.to_page_request()
        )
        return SliceResponse[ProductResponse].from_slice(
            result.map(product_with_category_to_response)
        )
    result = await service.filter_products_slice(
        request.to_filter(), request.to_page_request()
    )
    return SliceResponse[ProductResponse].from_slice(result.map(product_to_response))


# ============================================================================
# Single Product Endpoints
# ============================================================================


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    responses=NOT_FOUND,
    summary="Get product",
)
async def get_product(product_id: int, service: ServiceDep) -> ProductResponse:
    return product_to_response(await service.get_product_by_id(product_id))


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Create product",
)
async def create_product(
    request: ProductRequest, service: ServiceDep
) -> ProductResponse:
    """Create a product.

    Args:
        request: Product fields.
        service: Product service.

    Returns:
        Created product.
    """
    product = await service.create_product(request_to_product(request))
    return product_to_response(product)


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    responses={**BAD_REQUEST, **NOT_FOUND},
    summary="Update product",
    description="Partial update: only fields present in the body are changed.",
)
async def update_product(
    product_id: int, request: ProductUpdateRequest, service: ServiceDep
) -> ProductResponse:
    product = await service.update_product(
        product_id, request.model_dump(exclude={"base64_file"})
    )
    return product_to_response(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_FOUND,
    summary="Delete product",
)
async def delete_product(product_id: int, service: ServiceDep) -> Response:
    await service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
