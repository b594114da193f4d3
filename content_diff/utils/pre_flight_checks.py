"""
Fatal configuration checks run before a migration mutates anything.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence

from content_diff.database import Database

CORE_WP_TABLES = (
    "commentmeta",
    "comments",
    "links",
    "options",
    "postmeta",
    "posts",
    "terms",
    "termmeta",
    "term_relationships",
    "term_taxonomy",
    "usermeta",
    "users",
)

_PREFIX_RE = re.compile(r"^[A-Za-z0-9_]+$")


class PreFlightCheckError(Exception):
    """Custom exception for pre-flight check failures."""
    pass


class ConfigurationError(PreFlightCheckError):
    """Missing or malformed input such as a bad prefix or worklist."""


class MissingTablesError(PreFlightCheckError):
    """Raised when core tables are missing from the local or live table set."""

    def __init__(self, tables: Sequence[str]) -> None:
        self.tables = list(tables)
        super().__init__(f"Core tables not found: {', '.join(self.tables)}")


class CollationMismatchError(PreFlightCheckError):
    """Raised when live and local tables are not collated the same way."""

    def __init__(self, message: str, tables: Sequence[str] = ()) -> None:
        self.tables = list(tables)
        super().__init__(message)


class CollationRepairError(PreFlightCheckError):
    """A step of the table rebuild failed; the table needs manual attention."""


def validate_table_prefix(prefix: str) -> str:
    if not prefix or not _PREFIX_RE.match(prefix):
        raise ConfigurationError(f"Invalid table prefix: {prefix!r}")
    return prefix


def validate_core_wp_db_tables(
    db: Database,
    local_prefix: str,
    live_prefix: str,
    skip_tables: Iterable[str] = (),
) -> None:
    """Check that every core table exists locally and, unless skipped, on live.

    Raises:
        MissingTablesError: If any table is missing.
    """
    skip = set(skip_tables)
    existing = set(db.get_tables())
    missing: List[str] = []
    for table in CORE_WP_TABLES:
        if local_prefix + table not in existing:
            missing.append(local_prefix + table)
        if table not in skip and live_prefix + table not in existing:
            missing.append(live_prefix + table)
    if missing:
        raise MissingTablesError(missing)
