"""Domain layer.

Exceptions shared by the catalog, batch and API layers.
"""

from catalog_api.domain.exceptions import (
    BatchError,
    CatalogError,
    CatalogValidationError,
    CategoryNotFoundError,
    DataInitializationError,
    EntityNotFoundError,
    ExportFailedError,
    ExportJobNotFoundError,
    ExportPathError,
    InvalidJobTransitionError,
    InvalidSortFieldError,
    ProductNotFoundError,
    UnsupportedExportFormatError,
    WriterClosedError,
)

__all__ = [
    "BatchError",
    "CatalogError",
    "CatalogValidationError",
    "CategoryNotFoundError",
    "DataInitializationError",
    "EntityNotFoundError",
    "ExportFailedError",
    "ExportJobNotFoundError",
    "ExportPathError",
    "InvalidJobTransitionError",
    "InvalidSortFieldError",
    "ProductNotFoundError",
    "UnsupportedExportFormatError",
    "WriterClosedError",
]
