"""
Declarative base and mixins for record store tables.
"""

from .base import Base, SoftDeleteMixin, SortOrderMixin

__all__ = [
    "Base",
    "SoftDeleteMixin",
    "SortOrderMixin",
]
