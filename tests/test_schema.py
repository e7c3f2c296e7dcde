"""
Tests for `repositories/schema.py` and the migration files it guards.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import InMemoryTable
from repositories.schema import (
    REQUIRED_SCHEMA_VERSION,
    SCHEMA_MIGRATIONS_TABLE,
    SchemaVersionError,
    current_schema_version,
    require_schema_version,
)

MIGRATIONS_DIR = Path(__file__).parent.parent / "db" / "migrations"


def _migrations(*versions: int) -> InMemoryTable:
    return InMemoryTable(SCHEMA_MIGRATIONS_TABLE, [{"id": str(v), "version": v} for v in versions])


def test_current_version_is_highest_applied() -> None:
    assert current_schema_version(_migrations(1, 3, 2)) == 3
    assert current_schema_version(_migrations()) == 0


def test_start_up_refuses_older_schema() -> None:
    """Verify the service will not start against an unmigrated database."""

    with pytest.raises(SchemaVersionError):
        require_schema_version(_migrations(1, 2), required=3)


def test_start_up_accepts_current_schema() -> None:
    assert require_schema_version(_migrations(1, 2, 3), required=3) == 3


def test_required_version_matches_migration_files() -> None:
    """Verify REQUIRED_SCHEMA_VERSION is bumped with each new migration file."""

    files = sorted(MIGRATIONS_DIR.glob("*.sql"))

    assert len(files) == REQUIRED_SCHEMA_VERSION
    assert int(files[-1].name.split("_", 1)[0]) == REQUIRED_SCHEMA_VERSION
