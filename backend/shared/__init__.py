"""
Shared module for common utilities used by the record store.

STRUCTURE:
- shared.infrastructure: Database and log correlation
  - db.py: SQLAlchemy engine factory, safe_commit()
  - correlation.py: operation IDs shared by a cascade tree

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging

- shared.utils: Utilities
  - exceptions.py: Exceptions with auto-logging

IMPORT EXAMPLES:
    from shared.infrastructure.db import create_db_engine, safe_commit
    from shared.config.settings import settings
    from shared.config.logging import get_logger
    from shared.utils.exceptions import NotFoundError, DatabaseError
"""
