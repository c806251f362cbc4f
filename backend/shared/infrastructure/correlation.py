"""
Operation correlation for log records.

A delete or undelete that cascades produces log lines from many handles.
The outermost call opens an operation scope; nested calls reuse its ID, so
every line of one propagation tree shares the same operation_id.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# Context variable for the current operation ID
operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")


def get_operation_id() -> str:
    """Get the current operation ID (empty outside an operation scope)."""
    return operation_id_var.get()


@contextmanager
def operation_scope(operation_id: str | None = None) -> Iterator[str]:
    """
    Enter an operation scope, reusing the enclosing one if present.

    Usage:
        with operation_scope() as op_id:
            model.delete(5)
    """
    current = operation_id_var.get()
    if current and operation_id is None:
        yield current
        return

    token = operation_id_var.set(operation_id or str(uuid.uuid4()))
    try:
        yield operation_id_var.get()
    finally:
        operation_id_var.reset(token)


class CorrelationIdFilter:
    """
    Logging filter that adds operation_id to log records.

    Usage:
        import logging
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record) -> bool:
        record.operation_id = operation_id_var.get() or "-"
        return True
