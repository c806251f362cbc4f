"""
Record Model: the entity-level API over one configured table.

Adds soft delete/undelete, category scoping, maintained sort order and
cascade propagation on top of the record store.

Handles are immutable. Builder methods return a new handle carrying new
query options, so a chain like

    products.only_deleted().category(3).get()

never changes `products` itself and nothing leaks into the next call.

Usage:
    from record_store.services import RecordModel

    products = RecordModel(db, PRODUCTS, registry=registry)

    product_id = products.insert({"name": "Empanada", "menu_id": 3})
    products.category(3).move_up(product_id)

    result = products.delete(product_id)
    if not result:
        ...  # vetoed, or a feature is not configured
    result.cascade.raise_for_failures()

    page = products.with_deleted().paginate(20, page=2).get_page()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ContextManager

from sqlalchemy import not_
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.correlation import operation_scope
from shared.utils.exceptions import ConfigurationError, ValidationError
from record_store.services.crud.cascade_delete import CascadeChain, CascadeEngine, CascadeReport
from record_store.services.crud.factory import SELF_RELATION, ModelConfig, ModelRegistry
from record_store.services.crud.filters import (
    QueryOptions,
    Visibility,
    compose_filter,
    primary_key_clause,
)
from record_store.services.crud.hooks import Operation, Veto
from record_store.services.crud.pagination import Page, page_window
from record_store.services.crud.records import diff_rows
from record_store.services.crud.repository import RecordStore
from record_store.services.crud.soft_delete import soft_delete_values
from record_store.services.crud.sort_order import SortOrderEngine

logger = get_logger(__name__)


@dataclass
class MutationResult:
    """
    Outcome of delete() / undelete().

    Truthy when the operation ran. A falsy result is either a veto
    (vetoed=True) or a feature that is not configured.
    """

    operation: Operation
    ok: bool = True
    keys: list[Any] = field(default_factory=list)
    affected: int = 0
    vetoed: bool = False
    reason: str = ""
    cascade: CascadeReport | None = None

    def __post_init__(self) -> None:
        if self.cascade is None:
            self.cascade = CascadeReport(model="", operation=self.operation)

    def __bool__(self) -> bool:
        return self.ok


class RecordModel:
    """
    Scoped handle on one model.

    Args:
        session: Database session.
        config: Model configuration.
        registry: Registry used to open cascade targets (not needed for
            models without relations or with "self" relations only).
        options: Query options (builder methods set these).
        chain: Propagation state when this handle was opened by a cascade.
    """

    def __init__(
        self,
        session: Session,
        config: ModelConfig,
        *,
        registry: ModelRegistry | None = None,
        options: QueryOptions | None = None,
        chain: CascadeChain | None = None,
    ):
        self._session = session
        self._config = config
        self._registry = registry
        self._options = options or QueryOptions()
        self._chain = chain
        self._store = RecordStore(config.table, session)
        self._sort = SortOrderEngine(self._store, config) if config.sort_order_field else None

    @property
    def config(self) -> ModelConfig:
        """The model configuration."""
        return self._config

    @property
    def options(self) -> QueryOptions:
        """Query options of this handle."""
        return self._options

    @property
    def store(self) -> RecordStore:
        """The underlying record store."""
        return self._store

    def transaction(self) -> ContextManager[None]:
        """
        Join every call inside the block into one database transaction.

        Usage:
            with products.transaction():
                result = products.delete(5)
                result.cascade.raise_for_failures()  # rolls back everything
        """
        return self._store.transaction(f"{self._config.name} unit of work")

    # =========================================================================
    # Builders (each returns a new handle)
    # =========================================================================

    def _derive(self, **changes: Any) -> RecordModel:
        return RecordModel(
            self._session,
            self._config,
            registry=self._registry,
            options=self._options.replace(**changes),
            chain=self._chain,
        )

    def with_deleted(self, with_deleted: bool = True) -> RecordModel:
        """Include soft-deleted rows."""
        if with_deleted:
            return self._derive(visibility=Visibility.WITH_DELETED)
        if self._options.visibility is Visibility.WITH_DELETED:
            return self._derive(visibility=Visibility.DEFAULT)
        return self

    def only_deleted(self, only_deleted: bool = True) -> RecordModel:
        """Restrict to soft-deleted rows."""
        if only_deleted:
            return self._derive(visibility=Visibility.ONLY_DELETED)
        if self._options.visibility is Visibility.ONLY_DELETED:
            return self._derive(visibility=Visibility.DEFAULT)
        return self

    def category(self, category_id: Any) -> RecordModel:
        """Restrict to one category (None = all categories)."""
        return self._derive(category=category_id)

    def hard_delete(self, hard_delete: bool = True) -> RecordModel:
        """Make delete() physically remove rows, soft deleted ones included."""
        return self._derive(hard_delete=hard_delete)

    def where(self, *criteria: Any) -> RecordModel:
        """Add caller predicates (ANDed with everything else)."""
        return self._derive(criteria=self._options.criteria + tuple(c for c in criteria if c is not None))

    def paginate(self, page_size: int, page: int = 1) -> RecordModel:
        """
        Read page_size rows per page (0 turns pagination off).

        Raises:
            ValidationError: Negative or oversized page size.
        """
        if page_size < 0 or page_size > settings.max_page_size:
            raise ValidationError(
                f"Page size must be between 0 and {settings.max_page_size}",
                model=self._config.name,
                page_size=page_size,
            )
        return self._derive(page_size=page_size, page=page)

    # =========================================================================
    # Reads
    # =========================================================================

    def _filter(self, primary_values: Any = None, *extra: Any, visibility: Visibility | None = None) -> Any:
        return compose_filter(
            self._config,
            self._options,
            primary_key_clause(self._config, primary_values),
            *extra,
            visibility=visibility,
        )

    def _order_by(self) -> list[Any]:
        if self._sort is not None:
            return [self._config.column(self._sort.column_name), self._config.pk_column]
        return [self._config.pk_column]

    def get_page(self, primary_values: Any = None) -> Page:
        """
        Rows visible to this handle, ordered by sort order, one page at a time.

        Args:
            primary_values: Optional primary key value or list of them.

        Returns:
            Page with rows and pagination metadata.
        """
        criteria = self._filter(primary_values)
        size = self._options.page_size

        if size <= 0:
            rows = self._store.select(criteria, order_by=self._order_by())
            return Page(rows=rows, page=1, page_size=0, total=len(rows), total_pages=1)

        total = self._store.count(criteria)
        page, offset, total_pages = page_window(total, size, self._options.page)
        rows = self._store.select(criteria, order_by=self._order_by(), limit=size, offset=offset)
        return Page(rows=rows, page=page, page_size=size, total=total, total_pages=total_pages)

    def get(self, primary_values: Any = None) -> list[dict[str, Any]]:
        """Rows visible to this handle (see get_page())."""
        return self.get_page(primary_values).rows

    def get_one(self, primary_key: Any) -> dict[str, Any] | None:
        """A single visible row by primary key."""
        return self._store.first(self._filter(primary_key))

    def count(self) -> int:
        """Number of rows visible to this handle."""
        return self._store.count(self._filter())

    def exists(self, primary_values: Any = None) -> bool:
        """Whether any row is visible to this handle."""
        return self._store.first(self._filter(primary_values), columns=[self._config.pk_column]) is not None

    def get_within_date_range(
        self,
        from_column: str | None,
        to_column: str | None,
        date: datetime | str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Rows valid at a point in time: from_column <= date <= to_column.

        Either column may be None to leave that side open. The date defaults
        to now (UTC); strings are parsed as ISO 8601.
        """
        if date is None:
            date = datetime.now(timezone.utc)
        elif isinstance(date, str):
            try:
                date = datetime.fromisoformat(date)
            except ValueError:
                raise ValidationError(f"Invalid date '{date}'", model=self._config.name) from None

        criteria = []
        if from_column is not None:
            criteria.append(self._config.column(from_column) <= date)
        if to_column is not None:
            criteria.append(self._config.column(to_column) >= date)
        return self.where(*criteria).get()

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(self, values: dict[str, Any]) -> Any:
        """
        Insert a row at the end of the sort order.

        The sort order value is computed by the database in the INSERT
        itself; a value passed in `values` is ignored.

        Returns:
            The new primary key.
        """
        computed = {}
        if self._sort is not None:
            values = {k: v for k, v in values.items() if k != self._sort.column_name}
            computed[self._sort.column_name] = self._sort.next_value()

        with self._store.transaction(f"insert {self._config.name}"):
            primary_key = self._store.insert(values, computed)

        logger.debug("Row inserted", model=self._config.name, key=primary_key)
        return primary_key

    def update(self, values: dict[str, Any], primary_values: Any = None) -> int:
        """
        Update rows visible to this handle.

        Returns:
            Number of affected rows.
        """
        if not values:
            return 0
        for column in values:
            self._config.column(column)

        with self._store.transaction(f"update {self._config.name}"):
            return self._store.update(self._filter(primary_values), values)

    def save(self, old_row: dict[str, Any], new_row: dict[str, Any]) -> dict[str, Any]:
        """
        Write only the values that changed between two snapshots of a row.

        Returns:
            The values that were written (empty when nothing changed).

        Raises:
            ValidationError: old_row has no primary key value.
        """
        primary_key = old_row.get(self._config.primary_key)
        if primary_key is None:
            raise ValidationError(
                "Cannot save a row without its primary key",
                model=self._config.name,
            )

        changes = diff_rows(old_row, new_row)
        if changes:
            self.update(changes, primary_key)
        return changes

    def toggle(self, column: str, primary_values: Any = None) -> int:
        """
        Flip a boolean column on rows visible to this handle.

        Returns:
            Number of affected rows.
        """
        target = self._config.column(column)
        with self._store.transaction(f"toggle {self._config.name}.{column}"):
            return self._store.update(self._filter(primary_values), {column: not_(target)})

    # =========================================================================
    # Delete / Undelete
    # =========================================================================

    def delete(self, primary_values: Any = None) -> MutationResult:
        """
        Delete rows visible to this handle, then cascade.

        Soft deletes when a soft delete column is configured (unless
        hard_delete() is set); otherwise rows are removed and the sort order
        closes up behind them. A removal under the default visibility also
        takes rows that are already soft deleted; only_deleted() narrows it
        to those.

        Args:
            primary_values: Optional primary key value or list of them; the
                handle's filters apply either way.
        """
        return self._change_state(Operation.DELETE, primary_values)

    def undelete(self, primary_values: Any = None) -> MutationResult:
        """
        Reverse a soft delete, then cascade.

        Targets deleted rows regardless of the handle's visibility (unless
        with_deleted() is set). Fails without a soft delete column.
        """
        if self._config.soft_delete_field is None:
            logger.debug("Undelete skipped: soft delete not configured", model=self._config.name)
            return MutationResult(Operation.UNDELETE, ok=False)
        return self._change_state(Operation.UNDELETE, primary_values)

    def _is_soft(self, operation: Operation) -> bool:
        if self._config.soft_delete_field is None:
            return False
        return operation is Operation.UNDELETE or not self._options.hard_delete

    def _resolve_rows(self, operation: Operation, primary_values: Any, chain: CascadeChain) -> list[dict[str, Any]]:
        """Affected rows with every column the mutation and the relations need."""
        columns = [self._config.primary_key]
        if self._sort is not None:
            columns.append(self._sort.column_name)
        for _, relation in self._config.relations():
            columns.extend(relation.local_keys)
        columns = list(dict.fromkeys(columns))

        visibility = None
        if operation is Operation.UNDELETE and self._options.visibility is not Visibility.WITH_DELETED:
            visibility = Visibility.ONLY_DELETED
        elif (
            operation is Operation.DELETE
            and not self._is_soft(operation)
            and self._options.visibility is Visibility.DEFAULT
        ):
            # A physical removal also reaches rows that are already soft deleted
            visibility = Visibility.WITH_DELETED

        rows = self._store.select(
            self._filter(primary_values, visibility=visibility),
            columns=[self._config.column(name) for name in columns],
        )
        return [
            row for row in rows
            if not chain.is_visited(self._config.name, operation, row[self._config.primary_key])
        ]

    def _apply(self, operation: Operation, rows: list[dict[str, Any]]) -> int:
        keys = [row[self._config.primary_key] for row in rows]
        with self._store.transaction(f"{operation.value} {self._config.name}"):
            if self._is_soft(operation):
                return self._store.update(
                    self._config.pk_column.in_(keys),
                    soft_delete_values(self._config, deleted=operation is Operation.DELETE),
                )
            if self._sort is not None:
                return self._sort.remove(rows)
            return self._store.delete_raw(self._config.pk_column.in_(keys))

    def _open_related(self, target: str, chain: CascadeChain) -> RecordModel:
        if target in (SELF_RELATION, self._config.name):
            return RecordModel(self._session, self._config, registry=self._registry, chain=chain)
        if self._registry is None:
            raise ConfigurationError(
                self._config.name, f"relation target '{target}' needs a model registry"
            )
        return self._registry.handle(target, self._session, chain=chain)

    def _change_state(self, operation: Operation, primary_values: Any) -> MutationResult:
        chain = self._chain or CascadeChain()
        model = self._config.name

        with operation_scope():
            rows = self._resolve_rows(operation, primary_values, chain)
            if not rows:
                logger.debug(f"Nothing to {operation.value}", model=model)
                return MutationResult(operation, cascade=CascadeReport(model, operation))

            keys = [row[self._config.primary_key] for row in rows]
            decision = self._config.hooks.run_before(operation, keys)
            if isinstance(decision, Veto):
                return MutationResult(
                    operation,
                    ok=False,
                    keys=keys,
                    vetoed=True,
                    reason=decision.reason,
                    cascade=CascadeReport(model, operation),
                )

            if decision.keys != keys:
                rows = self._resolve_rows(operation, decision.keys, chain)
                keys = [row[self._config.primary_key] for row in rows]

            chain.mark(model, operation, keys)
            affected = self._apply(operation, rows) if rows else 0

            logger.info(
                f"Rows {operation.value}d",
                model=model,
                affected=affected,
                hard=not self._is_soft(operation),
                depth=chain.depth,
            )

            self._config.hooks.run_after(operation, keys, affected)

            report = CascadeEngine(self._config, self._open_related, chain).propagate(rows, operation)

        return MutationResult(operation, keys=keys, affected=affected, cascade=report)

    # =========================================================================
    # Sort order
    # =========================================================================

    def move_up(self, primary_key: Any) -> bool:
        """
        Move a row one position up within this handle's scope.

        Returns:
            False when sort order is not configured, the row is already
            first in scope, or the row does not exist.
        """
        if self._sort is None:
            logger.debug("Move up skipped: sort order not configured", model=self._config.name)
            return False
        return self._sort.move_up(primary_key, self._filter())

    def move_down(self, primary_key: Any) -> bool:
        """
        Move a row one position down within this handle's scope.

        Returns:
            False when sort order is not configured, the row is already
            last in scope, or the row does not exist.
        """
        if self._sort is None:
            logger.debug("Move down skipped: sort order not configured", model=self._config.name)
            return False
        return self._sort.move_down(primary_key, self._filter())

    def resequence(self) -> int:
        """Renumber the whole table 1..N in current order (0 without sort order)."""
        if self._sort is None:
            return 0
        return self._sort.resequence()
