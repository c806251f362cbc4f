"""
Soft delete column values.

A soft delete sets the flag column to True (and stamps deleted_at when the
model has one); an undelete reverses both. The rows themselves stay in the
table and keep their sort order.
"""

from datetime import datetime, timezone
from typing import Any

from .factory import ModelConfig


def soft_delete_values(config: ModelConfig, deleted: bool) -> dict[str, Any]:
    """
    Column values that mark rows as deleted (or live again).

    Args:
        config: Model configuration; must have a soft delete column.
        deleted: True for delete, False for undelete.

    Returns:
        Values for RecordStore.update().
    """
    values: dict[str, Any] = {config.soft_delete_field: deleted}
    if config.deleted_at_field is not None:
        values[config.deleted_at_field] = datetime.now(timezone.utc) if deleted else None
    return values
