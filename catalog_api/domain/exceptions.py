"""Domain exceptions.

All errors raised by the catalog and export layers. The API layer
translates them into problem responses in exactly one place.
"""

from typing import Any


class CatalogError(Exception):
    """Base class for all catalog exceptions."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Lookup Errors
# ============================================================================


class EntityNotFoundError(CatalogError):
    """Raised when a requested entity does not exist."""

    title = "Entity Not Found"


class ProductNotFoundError(EntityNotFoundError):
    """Raised when a product is not found."""

    title = "Product Not Found"

    def __init__(self, product_id: int) -> None:
        super().__init__(
            f"Product not found with id {product_id}",
            details={"product_id": product_id},
        )


class CategoryNotFoundError(EntityNotFoundError):
    """Raised when a category is not found."""

    title = "Category Not Found"

    def __init__(self, category_id: int) -> None:
        super().__init__(
            f"Category not found with id {category_id}",
            details={"category_id": category_id},
        )


class ExportJobNotFoundError(EntityNotFoundError):
    """Raised when an export job execution is not found."""

    title = "Export Job Not Found"

    def __init__(self, execution_id: int) -> None:
        super().__init__(
            f"Export job execution not found with id {execution_id}",
            details={"execution_id": execution_id},
        )


# ============================================================================
# Validation Errors
# ============================================================================


class CatalogValidationError(CatalogError):
    """Raised when input violates a rule checked outside the request schema."""

    def __init__(self, errors: dict[str, str]) -> None:
        """Initialize validation error.

        Args:
            errors: Mapping of field name to error message.
        """
        super().__init__("Validation error", details={"errors": errors})
        self.errors = errors


class InvalidSortFieldError(CatalogValidationError):
    """Raised when a sort field is not in the allow-list."""

    def __init__(self, field: str, allowed: list[str]) -> None:
        super().__init__(
            {"sort_by": f"Unsupported sort field '{field}'. Allowed: {', '.join(allowed)}"}
        )
        self.field = field
        self.allowed = allowed


class DataInitializationError(CatalogError):
    """Raised when sample data cannot be created."""

    pass


# ============================================================================
# Batch Errors
# ============================================================================


class BatchError(CatalogError):
    """Base class for export pipeline errors."""

    pass


class InvalidJobTransitionError(BatchError):
    """Raised when a job or step execution changes status illegally."""

    def __init__(
        self,
        execution_type: str,
        execution_id: int,
        current_status: str,
        target_status: str,
    ) -> None:
        super().__init__(
            f"Cannot transition {execution_type}({execution_id}) "
            f"from '{current_status}' to '{target_status}'",
            details={
                "execution_type": execution_type,
                "execution_id": execution_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class WriterClosedError(BatchError):
    """Raised when writing to an item writer that was already closed."""

    def __init__(self, writer_name: str) -> None:
        super().__init__(
            f"Writer '{writer_name}' has already been closed",
            details={"writer": writer_name},
        )


class UnsupportedExportFormatError(BatchError):
    """Raised when no export job exists for the requested format."""

    def __init__(self, export_format: str) -> None:
        super().__init__(
            f"Unsupported export format: {export_format}",
            details={"format": export_format},
        )


class ExportPathError(BatchError):
    """Raised when an export path falls outside the allowed base directory."""

    def __init__(self, file_path: str) -> None:
        super().__init__(
            f"Export path is not allowed: {file_path}",
            details={"file_path": file_path},
        )


class ExportFailedError(BatchError):
    """Raised when an export job finishes with FAILED status."""

    def __init__(self, execution_id: int, job_name: str, errors: list[str]) -> None:
        super().__init__(
            f"Export job '{job_name}' failed (execution {execution_id})",
            details={"execution_id": execution_id, "job_name": job_name, "errors": errors},
        )
        self.execution_id = execution_id
