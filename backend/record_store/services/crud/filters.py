"""
Filter composition for record model reads and updates.

A scoped handle carries an immutable QueryOptions value. compose_filter()
turns the options into one SQLAlchemy predicate from three independent
facets:

- soft delete visibility (only when a soft delete column is configured)
- category scope (only when a category column is configured and set)
- caller criteria added with RecordModel.where()

Usage:
    options = QueryOptions().replace(visibility=Visibility.ONLY_DELETED, category=3)
    predicate = compose_filter(config, options)
    rows = store.select(predicate)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, true

if TYPE_CHECKING:
    from .factory import ModelConfig


class Visibility(str, Enum):
    """Which rows are visible with respect to the soft delete flag."""

    DEFAULT = "default"  # live rows only
    WITH_DELETED = "with_deleted"  # live and deleted rows
    ONLY_DELETED = "only_deleted"  # deleted rows only


@dataclass(frozen=True)
class QueryOptions:
    """
    Per-call-chain query state.

    Never mutated: every builder call on a RecordModel produces a new value,
    so options cannot leak from one call chain into the next.
    """

    visibility: Visibility = Visibility.DEFAULT
    hard_delete: bool = False
    category: Any = None
    criteria: tuple[Any, ...] = ()
    page_size: int = 0
    page: int = 1

    def replace(self, **changes: Any) -> QueryOptions:
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)


def soft_delete_clause(config: ModelConfig, visibility: Visibility) -> Any:
    """Predicate for the soft delete flag, or None when nothing is filtered."""
    if config.soft_delete_field is None:
        return None

    flag = config.column(config.soft_delete_field)
    if visibility is Visibility.ONLY_DELETED:
        return flag.is_(True)
    if visibility is Visibility.WITH_DELETED:
        return None
    return flag.is_(False)


def category_clause(config: ModelConfig, category: Any) -> Any:
    """Equality predicate on the category column, or None."""
    if config.category_field is None or category is None:
        return None
    return config.column(config.category_field) == category


def primary_key_clause(config: ModelConfig, primary_values: Any) -> Any:
    """
    Predicate restricting to the given primary key value(s).

    None means no restriction; a list, tuple or set becomes IN (an empty
    collection matches nothing).
    """
    if primary_values is None:
        return None

    column = config.column(config.primary_key)
    if isinstance(primary_values, (list, tuple, set, frozenset)):
        return column.in_(list(primary_values))
    return column == primary_values


def compose_filter(
    config: ModelConfig,
    options: QueryOptions,
    *extra: Any,
    visibility: Visibility | None = None,
) -> Any:
    """
    Combine every active facet into one predicate (AND).

    Args:
        config: Model configuration (which columns exist).
        options: The handle's query options.
        *extra: Additional predicates; None entries are ignored.
        visibility: Overrides options.visibility (used by undelete).

    Returns:
        A SQLAlchemy boolean expression; true() when nothing applies.
    """
    clauses = [
        soft_delete_clause(config, visibility or options.visibility),
        category_clause(config, options.category),
        *options.criteria,
        *extra,
    ]
    clauses = [clause for clause in clauses if clause is not None]
    if not clauses:
        return true()
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)
