"""
Centralized exceptions for consistent error handling.

Feature-not-enabled, boundary and veto outcomes are not exceptions: they are
reported through return values. Exceptions cover misconfiguration and
failures that must never be swallowed.

Usage:
    from shared.utils.exceptions import NotFoundError, DatabaseError

    raise NotFoundError("Model", "products")
    raise DatabaseError("move up", table="products")
"""

from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(Exception):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and message format.
    """

    def __init__(
        self,
        detail: str,
        log_level: str = "warning",
        **log_context: Any,
    ):
        # Log the error with context
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, **log_context)

        self.detail = detail
        self.context = log_context
        super().__init__(detail)


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Named entity not found.

    Usage:
        raise NotFoundError("Model", "products")
    """

    def __init__(self, entity: str, identifier: Any = None, **log_context: Any):
        if identifier is not None:
            detail = f"{entity} '{identifier}' not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            detail,
            log_level="warning",
            entity=entity,
            identifier=identifier,
            **log_context,
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(AppException):
    """
    Invalid input to an operation.

    Usage:
        raise ValidationError("Page size must not be negative", page_size=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(detail, log_level="warning", **log_context)


class ConfigurationError(ValidationError):
    """
    A model or relation is configured inconsistently with its table.

    Usage:
        raise ConfigurationError("products", "Unknown column 'position'")
    """

    def __init__(self, model: str, reason: str, **log_context: Any):
        super().__init__(f"Invalid configuration for {model}: {reason}", model=model, **log_context)


# =============================================================================
# Internal Errors
# =============================================================================


class InternalError(AppException):
    """
    Unexpected failure while executing an operation.

    Usage:
        raise InternalError("Failed to resequence", table="products")
    """

    def __init__(self, detail: str = "Internal record store error", **log_context: Any):
        super().__init__(detail, log_level="error", **log_context)


class DatabaseError(InternalError):
    """A statement inside a transaction failed; the transaction was rolled back."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}; all changes were rolled back"
        super().__init__(detail, operation=operation, **log_context)
        self.operation = operation


class CascadeError(InternalError):
    """
    One or more cascade relations failed to propagate.

    Raised by CascadeReport.raise_for_failures(); the owning row's own
    mutation has already been applied.
    """

    def __init__(self, model: str, failures: list[Any], **log_context: Any):
        relations = ", ".join(f"{f.model}.{f.relation}" for f in failures)
        detail = f"Cascade from {model} failed for: {relations}"
        super().__init__(detail, model=model, failed=len(failures), **log_context)
        self.failures = failures
