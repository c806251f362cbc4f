"""
Sort Order Engine.

Keeps one dense, table-wide sequence 1..N in the sort order column. Every
row takes part (all categories, live and soft-deleted), so a soft-deleted
row keeps its slot and can be undeleted without colliding with anyone.

Scoped views (a category, only live rows, ...) are ordered subsequences of
the table-wide sequence. Moving a row swaps it with its nearest neighbor
inside the active scope by shifting the whole block between them, which
keeps the table-wide sequence dense even when out-of-scope rows sit in
between.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select

from shared.config.logging import get_logger
from .factory import ModelConfig
from .repository import RecordStore

logger = get_logger(__name__)


class SortOrderEngine:
    """Sort order maintenance for one model."""

    def __init__(self, store: RecordStore, config: ModelConfig):
        if config.sort_order_field is None:
            raise ValueError(f"{config.name} has no sort order column")
        self._store = store
        self._config = config
        self._name = config.sort_order_field
        self._column = config.column(config.sort_order_field)

    @property
    def column_name(self) -> str:
        """Name of the sort order column."""
        return self._name

    # =========================================================================
    # Insert
    # =========================================================================

    def next_value(self) -> Any:
        """
        Scalar subquery for 1 + MAX(sort order) over the whole table.

        Evaluated by the database inside the INSERT itself, so there is no
        window between reading the maximum and writing the row. The table is
        aliased because MySQL refuses to select from the insert target.
        """
        alias = self._config.table.alias("sort_max")
        return select(func.coalesce(func.max(alias.c[self._name]), 0) + 1).scalar_subquery()

    # =========================================================================
    # Moves
    # =========================================================================

    def position_of(self, primary_key: Any) -> int | None:
        """Current sort order of a row, ignoring every scope filter."""
        row = self._store.first(
            self._config.pk_column == primary_key,
            columns=[self._column],
        )
        if row is None:
            return None
        return row[self._name]

    def move_up(self, primary_key: Any, scope: Any) -> bool:
        """
        Move a row before its previous neighbor within the scope.

        Every row from the neighbor's position up to (excluding) the moving
        row shifts down by one; the moving row takes the neighbor's position.

        Args:
            primary_key: Row to move.
            scope: Predicate of the active scope (category, visibility, ...).

        Returns:
            True if the row moved; False at the first position, when no
            neighbor exists in scope, or when the row does not exist.
        """
        with self._store.transaction(f"move up {self._config.name}"):
            current = self.position_of(primary_key)
            if current is None:
                logger.debug("Move up skipped: row not found", model=self._config.name, key=primary_key)
                return False
            if current <= 1:
                return False

            previous = self._store.max(self._column, scope & (self._column < current))
            if previous is None:
                return False

            self._store.update(
                (self._column >= previous) & (self._column < current),
                {self._name: self._column + 1},
            )
            self._store.update(self._config.pk_column == primary_key, {self._name: previous})

        logger.info(
            "Row moved up",
            model=self._config.name,
            key=primary_key,
            from_position=current,
            to_position=previous,
        )
        return True

    def move_down(self, primary_key: Any, scope: Any) -> bool:
        """
        Move a row after its following neighbor within the scope.

        Mirror image of move_up(): rows after the moving row up to and
        including the neighbor shift up by one.

        Returns:
            True if the row moved; False at the last position, when no
            neighbor exists in scope, or when the row does not exist.
        """
        with self._store.transaction(f"move down {self._config.name}"):
            current = self.position_of(primary_key)
            if current is None:
                logger.debug("Move down skipped: row not found", model=self._config.name, key=primary_key)
                return False

            highest = self._store.max(self._column)
            if highest is None or current >= highest:
                return False

            following = self._store.min(self._column, scope & (self._column > current))
            if following is None:
                return False

            self._store.update(
                (self._column > current) & (self._column <= following),
                {self._name: self._column - 1},
            )
            self._store.update(self._config.pk_column == primary_key, {self._name: following})

        logger.info(
            "Row moved down",
            model=self._config.name,
            key=primary_key,
            from_position=current,
            to_position=following,
        )
        return True

    # =========================================================================
    # Removal
    # =========================================================================

    def remove(self, rows: list[dict[str, Any]]) -> int:
        """
        Physically delete rows, closing the gap each one leaves.

        Rows are handled from the highest position down, so each decrement
        works on positions that are still current. Runs inside the caller's
        transaction when there is one.

        Args:
            rows: Rows with primary key and sort order values.

        Returns:
            Number of deleted rows.
        """
        pk_name = self._config.primary_key
        ordered = sorted(
            rows,
            key=lambda row: row.get(self._name) if row.get(self._name) is not None else 0,
            reverse=True,
        )

        deleted = 0
        with self._store.transaction(f"delete {self._config.name}"):
            for row in ordered:
                position = row.get(self._name)
                if position is not None:
                    self._store.update(self._column > position, {self._name: self._column - 1})
                deleted += self._store.delete_raw(self._config.pk_column == row[pk_name])

        return deleted

    def resequence(self) -> int:
        """
        Rewrite the sequence to 1..N in current order (ties by primary key).

        Repairs tables written around the record model (bulk loads, manual
        fixes). Returns the number of rows whose position changed.
        """
        pk_name = self._config.primary_key
        changed = 0
        with self._store.transaction(f"resequence {self._config.name}"):
            rows = self._store.select(
                columns=[self._config.pk_column, self._column],
                order_by=[self._column, self._config.pk_column],
            )
            for position, row in enumerate(rows, start=1):
                if row[self._name] != position:
                    self._store.update(self._config.pk_column == row[pk_name], {self._name: position})
                    changed += 1

        if changed:
            logger.info("Sort order resequenced", model=self._config.name, changed=changed)
        return changed
