"""
Schema version guard.

The code reads and writes columns introduced by numbered migrations under
db/migrations/. Each migration records its version in `schema_migrations`.
Starting the service against an older schema is refused instead of letting
requests fail later on a missing column.
"""

from __future__ import annotations

import logging

from repositories.table import SupabaseTable

logger = logging.getLogger(__name__)

SCHEMA_MIGRATIONS_TABLE: str = "schema_migrations"

# Bump together with a new file in db/migrations/.
REQUIRED_SCHEMA_VERSION: int = 3


class SchemaVersionError(RuntimeError):
    """The database schema is older than this code requires."""


def current_schema_version(table: SupabaseTable) -> int:
    rows = table.select(order_by="version", descending=True, limit=1)
    if not rows:
        return 0
    return int(rows[0]["version"])


def require_schema_version(table: SupabaseTable, required: int = REQUIRED_SCHEMA_VERSION) -> int:
    """
    Ensure the store has applied at least `required` migrations.

    Returns:
        The applied schema version.

    Raises:
        SchemaVersionError: if the applied version is older than required
    """

    version = current_schema_version(table)
    if version < required:
        raise SchemaVersionError(
            f"Database schema is at version {version}, but version {required} is required. "
            f"Apply the pending files in db/migrations/ before starting the service."
        )
    logger.info("Database schema version %s (required %s)", version, required)
    return version


__all__ = [
    "REQUIRED_SCHEMA_VERSION",
    "SCHEMA_MIGRATIONS_TABLE",
    "SchemaVersionError",
    "current_schema_version",
    "require_schema_version",
]
