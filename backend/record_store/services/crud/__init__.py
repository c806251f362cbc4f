"""
CRUD Services - building blocks of the record model.

Provides:
- RecordStore: Generic data access over one table (select/update/insert/delete_raw/transaction)
- QueryOptions, Visibility, compose_filter: Filter composition
- SortOrderEngine: Dense sort order with move up/down and renumbering
- CascadeEngine, CascadeReport: Delete/undelete propagation to dependent models
- LifecycleHooks, Proceed, Veto: Before/after delete and undelete hooks
- ModelConfig, ModelRegistry, Relation: Model configuration and handle factory
- Page, diff_rows, rows_by_key: Pagination and row helpers
"""

from .repository import RecordStore
from .filters import (
    QueryOptions,
    Visibility,
    compose_filter,
    primary_key_clause,
)
from .hooks import (
    LifecycleHooks,
    Operation,
    Proceed,
    Veto,
)
from .factory import (
    SELF_RELATION,
    ModelConfig,
    ModelRegistry,
    Relation,
    default_primary_key,
    resolve_relation,
)
from .soft_delete import soft_delete_values
from .sort_order import SortOrderEngine
from .cascade_delete import (
    CascadeChain,
    CascadeEngine,
    CascadeFailure,
    CascadeReport,
    relation_filter,
)
from .pagination import Page, page_window
from .records import diff_rows, rows_by_key

__all__ = [
    # Record store
    "RecordStore",
    # Filters
    "QueryOptions",
    "Visibility",
    "compose_filter",
    "primary_key_clause",
    # Hooks
    "LifecycleHooks",
    "Operation",
    "Proceed",
    "Veto",
    # Configuration
    "SELF_RELATION",
    "ModelConfig",
    "ModelRegistry",
    "Relation",
    "default_primary_key",
    "resolve_relation",
    # Soft delete
    "soft_delete_values",
    # Sort order
    "SortOrderEngine",
    # Cascade
    "CascadeChain",
    "CascadeEngine",
    "CascadeFailure",
    "CascadeReport",
    "relation_filter",
    # Pagination and rows
    "Page",
    "page_window",
    "diff_rows",
    "rows_by_key",
]
