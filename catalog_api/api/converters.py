"""Entity and schema converters.

Routers and the JSON export writer share these, so a product looks the
same in an API response and in an export file.
"""

from catalog_api.api.schemas import (
    CategoryRequest,
    CategoryResponse,
    CategorySummary,
    ProductRequest,
    ProductResponse,
)
from catalog_api.catalog.models import Category, Product


def product_to_response(product: Product, include_category: bool = False) -> ProductResponse:
    """Convert Product entity to response schema.

    Args:
        product: Product entity.
        include_category: Embed the category summary. The relationship
            must have been eagerly loaded by the query.

    Returns:
        Product response.
    """
    category = None
    if include_category and product.category is not None:
        category = CategorySummary(id=product.category.id, name=product.category.name)

    return ProductResponse(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        in_stock=product.in_stock,
        stock=product.stock,
        category_id=product.category_id,
        category=category,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def product_with_category_to_response(product: Product) -> ProductResponse:
    return product_to_response(product, include_category=True)


def category_to_response(category: Category) -> CategoryResponse:
    """Convert Category entity to response schema."""
    return CategoryResponse(
        id=category.id,
        name=category.name,
        description=category.description,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def request_to_product(request: ProductRequest) -> Product:
    """Build a new product entity from a create request."""
    return Product(
        name=request.name.strip(),
        description=request.description,
        price=request.price,
        in_stock=request.in_stock,
        stock=request.stock,
        category_id=request.category_id,
    )


def request_to_category(request: CategoryRequest) -> Category:
    """Build a new category entity from a create request."""
    return Category(name=request.name.strip(), description=request.description)
