"""
Record store extensions for table-backed models.

Soft delete/undelete, category scoping, maintained sort order and cascade
propagation on top of SQLAlchemy.
"""

from record_store.services import MutationResult, RecordModel
from record_store.services.crud import (
    CascadeReport,
    LifecycleHooks,
    ModelConfig,
    ModelRegistry,
    Page,
    Proceed,
    Relation,
    Veto,
    Visibility,
)

__all__ = [
    "CascadeReport",
    "LifecycleHooks",
    "ModelConfig",
    "ModelRegistry",
    "MutationResult",
    "Page",
    "Proceed",
    "RecordModel",
    "Relation",
    "Veto",
    "Visibility",
]
