"""
Lifecycle hooks for delete and undelete.

Handlers are registered once, at model configuration time, and run
synchronously in registration order.

- before_delete / before_undelete handlers receive the resolved primary keys
  and return Proceed(keys) (optionally with a replacement key list) or
  Veto(reason). The first veto aborts the operation before any mutation.
- after_delete / after_undelete handlers receive the final keys and the
  number of affected rows. Their return value is ignored.

Usage:
    def keep_featured(keys):
        if featured_ids & set(keys):
            return Veto("featured products cannot be deleted")
        return Proceed(keys)

    hooks = LifecycleHooks(before_delete=[keep_featured])
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from shared.config.logging import get_logger

logger = get_logger(__name__)


class Operation(str, Enum):
    """State changes that run hooks and cascade."""

    DELETE = "delete"
    UNDELETE = "undelete"


@dataclass(frozen=True)
class Proceed:
    """Continue with these primary keys."""

    keys: list[Any]


@dataclass(frozen=True)
class Veto:
    """Abort the operation."""

    reason: str = ""


HookResult = Union[Proceed, Veto]
BeforeHandler = Callable[[list[Any]], HookResult]
AfterHandler = Callable[[list[Any], int], Any]


@dataclass
class LifecycleHooks:
    """Ordered handler lists for one model."""

    before_delete: list[BeforeHandler] = field(default_factory=list)
    after_delete: list[AfterHandler] = field(default_factory=list)
    before_undelete: list[BeforeHandler] = field(default_factory=list)
    after_undelete: list[AfterHandler] = field(default_factory=list)

    def _before(self, operation: Operation) -> Sequence[BeforeHandler]:
        if operation is Operation.DELETE:
            return self.before_delete
        return self.before_undelete

    def _after(self, operation: Operation) -> Sequence[AfterHandler]:
        if operation is Operation.DELETE:
            return self.after_delete
        return self.after_undelete

    def run_before(self, operation: Operation, keys: list[Any]) -> HookResult:
        """
        Run the before handlers, threading each Proceed's keys into the next.

        Raises:
            TypeError: A handler returned something other than Proceed/Veto.
        """
        decision: HookResult = Proceed(list(keys))
        for handler in self._before(operation):
            decision = handler(list(decision.keys))
            if isinstance(decision, Veto):
                logger.info(
                    f"{operation.value.capitalize()} vetoed by hook",
                    handler=getattr(handler, "__name__", repr(handler)),
                    reason=decision.reason,
                )
                return decision
            if not isinstance(decision, Proceed):
                raise TypeError(
                    f"before_{operation.value} handler must return Proceed or Veto, "
                    f"got {type(decision).__name__}"
                )
        return decision

    def run_after(self, operation: Operation, keys: list[Any], affected: int) -> None:
        """Run the after handlers (observation only)."""
        for handler in self._after(operation):
            handler(list(keys), affected)
