"""
Utilities module: Exceptions.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    ConfigurationError,
    InternalError,
    DatabaseError,
    CascadeError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "ConfigurationError",
    "InternalError",
    "DatabaseError",
    "CascadeError",
]
