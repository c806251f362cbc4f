"""
Cascade Engine: propagate delete/undelete into dependent models.

When rows of a model are deleted (or undeleted), every relation configured
in ModelConfig.cascade is applied to the dependent model: the relation's key
pairs, filled with the affected rows' values, become the dependent handle's
filter, and the same operation runs there. Dependents may cascade further,
so one call can touch a whole tree of models.

Propagation is best-effort. The owning rows' own change is already
committed when relations run; each relation runs on its own, and a failing
relation is recorded in the CascadeReport without stopping the others.
Callers that need all-or-nothing wrap the call in RecordModel.transaction()
and call report.raise_for_failures() inside it.

A visited set keyed by (model, operation, primary key) is shared by the
whole propagation tree, so cyclic relation graphs terminate; a depth limit
from settings backs it up.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, or_

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import CascadeError, InternalError
from .factory import SELF_RELATION, ModelConfig, Relation
from .hooks import Operation

if TYPE_CHECKING:
    from record_store.services.record_model import RecordModel

logger = get_logger(__name__)


@dataclass
class CascadeFailure:
    """One relation that could not be propagated."""

    model: str
    relation: str
    target: str
    operation: Operation
    error: str
    exception: BaseException | None = field(default=None, repr=False, compare=False)


@dataclass
class CascadeReport:
    """
    Outcome of a propagation tree.

    affected counts rows changed per dependent model (owning rows excluded);
    failures lists every relation, at any depth, that failed.
    """

    model: str
    operation: Operation
    affected: dict[str, int] = field(default_factory=dict)
    failures: list[CascadeFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every relation propagated."""
        return not self.failures

    @property
    def total_affected(self) -> int:
        """Rows changed in dependent models."""
        return sum(self.affected.values())

    def add(self, target: str, affected: int) -> None:
        """Count rows changed in a dependent model."""
        self.affected[target] = self.affected.get(target, 0) + affected

    def merge(self, other: CascadeReport) -> None:
        """Fold a nested report into this one."""
        for target, affected in other.affected.items():
            self.add(target, affected)
        self.failures.extend(other.failures)

    def raise_for_failures(self) -> None:
        """
        Raises:
            CascadeError: At least one relation failed.
        """
        if self.failures:
            raise CascadeError(self.model, self.failures, operation=self.operation.value)


@dataclass
class CascadeChain:
    """State shared by every handle of one propagation tree."""

    max_depth: int = field(default_factory=lambda: settings.cascade_max_depth)
    depth: int = 0
    visited: set[tuple[str, str, Any]] = field(default_factory=set)

    def is_visited(self, model: str, operation: Operation, key: Any) -> bool:
        return (model, operation.value, key) in self.visited

    def mark(self, model: str, operation: Operation, keys: list[Any]) -> None:
        self.visited.update((model, operation.value, key) for key in keys)

    def descend(self) -> CascadeChain:
        """Chain for the next level down (same visited set)."""
        return CascadeChain(max_depth=self.max_depth, depth=self.depth + 1, visited=self.visited)


def relation_filter(target: ModelConfig, relation: Relation, rows: list[dict[str, Any]]) -> Any:
    """
    Predicate selecting the dependent rows of the affected rows.

    Single-column relations become IN lists; composite ones become an OR
    of per-row ANDs. Returns None when no row has usable key values.
    """
    if len(relation.keys) == 1 or relation.match_any:
        clauses = []
        for local, foreign in relation.keys:
            values = list(dict.fromkeys(row[local] for row in rows if row.get(local) is not None))
            if values:
                clauses.append(target.column(foreign).in_(values))
        if not clauses:
            return None
        return clauses[0] if len(clauses) == 1 else or_(*clauses)

    per_row = []
    for row in rows:
        if any(row.get(local) is None for local, _ in relation.keys):
            continue
        per_row.append(and_(*(target.column(foreign) == row[local] for local, foreign in relation.keys)))
    if not per_row:
        return None
    return per_row[0] if len(per_row) == 1 else or_(*per_row)


class CascadeEngine:
    """
    Applies one model's cascade relations to a set of affected rows.

    open_handle is the factory for dependent handles: given a model name
    and a chain, it returns a fresh, independently scoped RecordModel.
    """

    def __init__(
        self,
        config: ModelConfig,
        open_handle: Callable[[str, CascadeChain], RecordModel],
        chain: CascadeChain,
    ):
        self._config = config
        self._open_handle = open_handle
        self._chain = chain

    def propagate(self, rows: list[dict[str, Any]], operation: Operation) -> CascadeReport:
        """
        Run every relation for the affected rows.

        Returns:
            Report of affected dependents and failed relations.
        """
        report = CascadeReport(self._config.name, operation)
        if not rows:
            return report

        for name, relation in self._config.relations():
            target = self._config.name if relation.target == SELF_RELATION else relation.target
            try:
                self._propagate_relation(name, relation, target, rows, operation, report)
            except Exception as e:
                logger.error(
                    "Cascade relation failed",
                    model=self._config.name,
                    relation=name,
                    target=target,
                    operation=operation.value,
                    error=str(e),
                    exc_info=True,
                )
                report.failures.append(
                    CascadeFailure(
                        model=self._config.name,
                        relation=name,
                        target=target,
                        operation=operation,
                        error=str(e),
                        exception=e,
                    )
                )

        if report.total_affected or report.failures:
            logger.info(
                f"Cascade {operation.value} propagated",
                model=self._config.name,
                affected=report.affected,
                failures=len(report.failures),
                depth=self._chain.depth,
            )
        return report

    def _propagate_relation(
        self,
        name: str,
        relation: Relation,
        target: str,
        rows: list[dict[str, Any]],
        operation: Operation,
        report: CascadeReport,
    ) -> None:
        if self._chain.depth >= self._chain.max_depth:
            raise InternalError(
                "Cascade depth limit reached",
                model=self._config.name,
                relation=name,
                max_depth=self._chain.max_depth,
            )

        dependent = self._open_handle(target, self._chain.descend())
        if operation is Operation.UNDELETE and dependent.config.soft_delete_field is None:
            logger.debug(
                "Cascade undelete skipped: dependent has no soft delete",
                model=self._config.name,
                relation=name,
            )
            return

        criteria = relation_filter(dependent.config, relation, rows)
        if criteria is None:
            return

        dependent = dependent.where(criteria)
        if operation is Operation.DELETE:
            if relation.hard_delete:
                dependent = dependent.hard_delete()
            result = dependent.delete()
        else:
            result = dependent.undelete()

        if result.vetoed:
            raise InternalError(
                f"Cascade {operation.value} vetoed by {target} hook",
                model=self._config.name,
                relation=name,
                reason=result.reason,
            )

        report.add(target, result.affected)
        report.merge(result.cascade)
