"""Product catalog.

Provides the Product and Category models, dynamic filter
specifications, paginated repositories and the catalog services.
"""

from catalog_api.catalog.models import Category, Product
from catalog_api.catalog.pagination import Page, PageRequest, Slice, Sort, SortDirection
from catalog_api.catalog.repository import CategoryRepository, ProductRepository
from catalog_api.catalog.specifications import (
    CategoryFilter,
    ProductFilter,
    Specification,
    category_specification,
    product_specification,
)

__all__ = [
    # Models
    "Category",
    "Product",
    # Pagination
    "Page",
    "PageRequest",
    "Slice",
    "Sort",
    "SortDirection",
    # Specifications
    "CategoryFilter",
    "ProductFilter",
    "Specification",
    "category_specification",
    "product_specification",
    # Repositories
    "CategoryRepository",
    "ProductRepository",
]
