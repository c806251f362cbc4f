"""
Infrastructure module: Database engines and log correlation.

Provides:
- Database engines and commits (db.py)
- Operation IDs for log correlation (correlation.py)
"""

from shared.infrastructure.db import (
    create_db_engine,
    safe_commit,
)
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    get_operation_id,
    operation_scope,
)

__all__ = [
    # db
    "create_db_engine",
    "safe_commit",
    # correlation
    "CorrelationIdFilter",
    "get_operation_id",
    "operation_scope",
]
