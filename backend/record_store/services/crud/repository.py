"""
Record Store: generic data access over one table.

The record store is the only place that executes SQL. Everything above it
(filters, sort order, cascades, the record model facade) builds SQLAlchemy
expressions and hands them in.

Usage:
    from record_store.services.crud.repository import RecordStore

    store = RecordStore(products_table, db)

    rows = store.select(products_table.c.menu_id == 3, order_by=products_table.c.sort_order)
    highest = store.max(products_table.c.sort_order)

    with store.transaction("reorder products"):
        store.update(products_table.c.sort_order > 4, {"sort_order": products_table.c.sort_order - 1})
        store.delete_raw(products_table.c.product_id == 7)
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import DatabaseError

logger = get_logger(__name__)

# Session.info key holding the nesting depth of RecordStore.transaction()
TRANSACTION_DEPTH_KEY = "record_store.transaction_depth"


class RecordStore:
    """
    Typed CRUD over a single table, returning rows as plain dicts.

    All methods take SQLAlchemy column expressions as filters; None means
    "no restriction". Rows are never cached.
    """

    def __init__(self, table: Table, session: Session):
        self._table = table
        self._session = session

    @property
    def table(self) -> Table:
        """The SQLAlchemy table."""
        return self._table

    @property
    def session(self) -> Session:
        """The database session."""
        return self._session

    # =========================================================================
    # Reads
    # =========================================================================

    def select(
        self,
        where: Any = None,
        *,
        columns: Sequence[Any] | None = None,
        order_by: Any = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Select rows.

        Args:
            where: Filter expression.
            columns: Columns to return (defaults to all columns).
            order_by: Column, expression or list of them.
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            List of rows as dicts.
        """
        query = select(*columns) if columns else select(self._table)
        if where is not None:
            query = query.where(where)
        if order_by is not None:
            if isinstance(order_by, (list, tuple)):
                query = query.order_by(*order_by)
            else:
                query = query.order_by(order_by)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        return [dict(row) for row in self._session.execute(query).mappings()]

    def first(self, where: Any = None, **kwargs: Any) -> dict[str, Any] | None:
        """Select the first matching row, or None."""
        rows = self.select(where, limit=1, **kwargs)
        return rows[0] if rows else None

    def count(self, where: Any = None) -> int:
        """Count matching rows."""
        query = select(func.count()).select_from(self._table)
        if where is not None:
            query = query.where(where)
        return self._session.scalar(query) or 0

    def max(self, column: Any, where: Any = None) -> Any:
        """Maximum value of a column over matching rows (None if no rows)."""
        query = select(func.max(column))
        if where is not None:
            query = query.where(where)
        return self._session.scalar(query)

    def min(self, column: Any, where: Any = None) -> Any:
        """Minimum value of a column over matching rows (None if no rows)."""
        query = select(func.min(column))
        if where is not None:
            query = query.where(where)
        return self._session.scalar(query)

    # =========================================================================
    # Writes
    # =========================================================================

    def insert(
        self,
        values: Mapping[str, Any],
        computed: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Insert one row.

        Args:
            values: Column values.
            computed: Column expressions evaluated by the database in the
                same statement (e.g. a scalar subquery).

        Returns:
            The new row's primary key value.
        """
        statement = insert(self._table).values({**values, **(computed or {})})
        result = self._session.execute(statement)
        primary_key = result.inserted_primary_key
        return primary_key[0] if primary_key is not None and len(primary_key) == 1 else primary_key

    def update(self, where: Any, values: Mapping[str, Any]) -> int:
        """
        Update matching rows.

        Values may be plain values or column expressions
        (e.g. {"sort_order": table.c.sort_order + 1}).

        Returns:
            Number of affected rows.
        """
        statement = update(self._table).values(dict(values))
        if where is not None:
            statement = statement.where(where)
        return self._session.execute(statement).rowcount

    def delete_raw(self, where: Any) -> int:
        """
        Physically delete matching rows.

        Used by the sort order engine and hard deletes; entity-level deletes
        go through RecordModel.delete().

        Returns:
            Number of deleted rows.
        """
        statement = delete(self._table)
        if where is not None:
            statement = statement.where(where)
        return self._session.execute(statement).rowcount

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[None]:
        """
        All-or-nothing scope for a multi-statement sequence.

        The outermost scope on a session commits on success and rolls back on
        any failure. Nested scopes on the same session (from any table) run
        inside the outermost one as a SAVEPOINT: a failing nested scope undoes
        only its own statements and re-raises, and nothing is committed until
        the outermost scope ends. A caller can therefore make a whole
        delete-with-cascade atomic by opening a scope first.

        Raises:
            DatabaseError: A statement failed in the outermost scope; everything
                was rolled back.
        """
        depth = self._session.info.get(TRANSACTION_DEPTH_KEY, 0)
        savepoint = self._session.begin_nested() if depth > 0 else None
        self._session.info[TRANSACTION_DEPTH_KEY] = depth + 1
        try:
            yield
            if savepoint is not None:
                savepoint.commit()
            else:
                safe_commit(self._session)
        except SQLAlchemyError as e:
            if savepoint is not None:
                if savepoint.is_active:
                    savepoint.rollback()
                raise
            self._session.rollback()
            logger.error(
                "Transaction rolled back",
                table=self._table.name,
                operation=operation,
                error=str(e),
            )
            raise DatabaseError(operation, table=self._table.name) from e
        except Exception:
            if savepoint is not None:
                if savepoint.is_active:
                    savepoint.rollback()
            else:
                self._session.rollback()
            raise
        finally:
            self._session.info[TRANSACTION_DEPTH_KEY] = depth
