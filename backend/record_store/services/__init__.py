"""
Record store services.

- record_model.py: RecordModel, the entity-level API
- crud/: building blocks (record store, filters, sort order, cascades, hooks)
"""

from .record_model import MutationResult, RecordModel

__all__ = [
    "MutationResult",
    "RecordModel",
]
