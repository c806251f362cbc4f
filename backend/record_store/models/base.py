"""
Base class and mixins for tables managed by the record store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class SoftDeleteMixin:
    """
    Mixin providing the soft delete flag and its timestamp.

    Fields added:
    - is_deleted: Soft delete flag (True = deleted, False = live)
    - deleted_at: Set when the row is soft deleted, cleared on undelete

    Configure with ModelConfig(soft_delete_field="is_deleted",
    deleted_at_field="deleted_at").
    """

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        state = "deleted" if self.is_deleted else "live"
        return f"<{class_name}({state})>"


class SortOrderMixin:
    """
    Mixin providing the sort order column.

    Values are assigned by RecordModel.insert() and maintained by the
    sort order engine; rows written around it can be repaired with
    RecordModel.resequence().
    """

    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
