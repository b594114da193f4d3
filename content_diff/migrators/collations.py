"""
Collation checks and repair for the live table set.

String comparisons between the local and live tables only behave when both
sets use the same collation.  :class:`CollationReconciler` compares the
collation of every core table and, when asked to, rebuilds a mismatched live
table: the live table is renamed to a backup, a new table is created with
the local table's structure, and rows are copied over from the backup in
batches.  The backup is left in place for manual cleanup.

Batch size and the pause between batches come from a named mode, see
:data:`COLLATION_MODES`.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from content_diff.database import Database
from content_diff.utils.pre_flight_checks import (
    CORE_WP_TABLES,
    CollationMismatchError,
    CollationRepairError,
    validate_table_prefix,
)

# mode -> (records per batch, seconds to sleep between batches)
COLLATION_MODES: Dict[str, Dict[str, int]] = {
    "aggressive": {"records_per_transaction": 15000, "sleep_in_seconds": 1},
    "generous": {"records_per_transaction": 10000, "sleep_in_seconds": 2},
    "calm": {"records_per_transaction": 1000, "sleep_in_seconds": 3},
    "cautious": {"records_per_transaction": 5000, "sleep_in_seconds": 2},
}
DEFAULT_COLLATION_MODE = "cautious"
DEFAULT_BACKUP_PREFIX = "collationbak_"


class CollationReconciler:
    def __init__(
        self,
        db: Database,
        local_prefix: str = "wp_",
        log: Optional[Callable[[str, str], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)
        self.log = log or (lambda message, level="INFO": print(f"[{level}] {message}"))
        self.sleep = sleep

    def get_collation_comparison(self, live_prefix: str, skip_tables: Iterable[str] = ()) -> List[Dict[str, Any]]:
        """Compare local and live collations of the core tables.

        :param live_prefix: Table prefix of the live tables.
        :param skip_tables: Core table names (without prefix) to leave out.
        :return: One dict per table with ``table``, ``core_table_name``,
            ``core_table_collation``, ``live_table_name``,
            ``live_table_collation``, ``match`` (``"YES"``/``"NO"``) and
            ``match_bool``.
        :raises CollationMismatchError: If no table could be compared.
        """
        validate_table_prefix(live_prefix)
        skip = set(skip_tables)
        rows: List[Dict[str, Any]] = []
        for table in CORE_WP_TABLES:
            if table in skip:
                continue
            core_name = self.local_prefix + table
            live_name = live_prefix + table
            core_collation = self.db.get_table_collation(core_name)
            live_collation = self.db.get_table_collation(live_name)
            if live_collation is None:
                self.log(f"Table {live_name} not found, skipping its collation check.", "WARNING")
                continue
            if core_collation is None:
                self.log(f"Table {core_name} not found, skipping its collation check.", "WARNING")
                continue
            matching = core_collation == live_collation
            rows.append(
                {
                    "table": table,
                    "core_table_name": core_name,
                    "core_table_collation": core_collation,
                    "live_table_name": live_name,
                    "live_table_collation": live_collation,
                    "match": "YES" if matching else "NO",
                    "match_bool": matching,
                }
            )
        if not rows:
            raise CollationMismatchError("Unable to validate collation of live and local tables, none could be compared.")
        return rows

    @staticmethod
    def filter_for_different_collated_tables(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [row for row in rows if not row["match_bool"]]

    def are_table_collations_matching(self, live_prefix: str, skip_tables: Iterable[str] = ()) -> bool:
        rows = self.get_collation_comparison(live_prefix, skip_tables)
        return not self.filter_for_different_collated_tables(rows)

    def validate(self, live_prefix: str, skip_tables: Iterable[str] = ()) -> None:
        """Raise :class:`CollationMismatchError` listing the mismatched tables."""
        rows = self.get_collation_comparison(live_prefix, skip_tables)
        different = self.filter_for_different_collated_tables(rows)
        if different:
            names = [row["live_table_name"] for row in different]
            raise CollationMismatchError(
                f"Live tables have different collations than local tables: {', '.join(names)}", names
            )

    def copy_table_data_using_proper_collation(
        self,
        live_prefix: str,
        table: str,
        records_per_transaction: int = 5000,
        sleep_in_seconds: float = 1,
        backup_prefix: str = DEFAULT_BACKUP_PREFIX,
    ) -> int:
        """Rebuild ``live_prefix + table`` with the local table's structure.

        Returns the number of copied rows.
        """
        validate_table_prefix(backup_prefix)
        live_table = live_prefix + table
        backup_table = backup_prefix + live_table
        core_table = self.local_prefix + table

        if self.db.table_exists(backup_table):
            raise CollationRepairError(f"Backup table {backup_table} already exists, remove it first.")

        try:
            self.db.rename_table(live_table, backup_table)
        except Exception as e:
            raise CollationRepairError(f"Could not rename {live_table} to {backup_table}: {e}") from e
        try:
            self.db.create_table_like(live_table, core_table)
        except Exception as e:
            raise CollationRepairError(f"Could not create {live_table} like {core_table}: {e}") from e

        columns = self.db.get_columns(backup_table)
        total = self.db.count_rows(backup_table)
        if total == 0:
            self.log(f"Table {backup_table} has no rows to copy.", "INFO")
            return 0

        copied = 0
        for offset in range(0, total, records_per_transaction):
            try:
                inserted = self.db.copy_rows(live_table, backup_table, columns, offset, records_per_transaction)
            except Exception as e:
                raise CollationRepairError(
                    f"Failed copying rows {offset}-{offset + records_per_transaction} of {backup_table}: {e}"
                ) from e
            if inserted <= 0:
                raise CollationRepairError(
                    f"No rows were copied from {backup_table} into {live_table} at offset {offset}."
                )
            copied += inserted
            self.log(f"{live_table}: copied {copied}/{total} rows.", "INFO")
            if offset + records_per_transaction < total:
                self.sleep(sleep_in_seconds)
        return copied

    def correct_collations(
        self,
        live_prefix: str,
        mode: str = DEFAULT_COLLATION_MODE,
        skip_tables: Iterable[str] = (),
        backup_prefix: str = DEFAULT_BACKUP_PREFIX,
    ) -> List[str]:
        """Rebuild every live table whose collation differs from its local table.

        Returns the names of the corrected tables.
        """
        if mode not in COLLATION_MODES:
            raise ValueError(f"Unknown collation mode {mode!r}, use one of {', '.join(COLLATION_MODES)}")
        settings = COLLATION_MODES[mode]
        rows = self.get_collation_comparison(live_prefix, skip_tables)
        corrected: List[str] = []
        for row in self.filter_for_different_collated_tables(rows):
            self.log(
                f"Correcting {row['live_table_name']} from {row['live_table_collation']} to "
                f"{row['core_table_collation']} ({mode} mode).",
                "INFO",
            )
            self.copy_table_data_using_proper_collation(
                live_prefix,
                row["table"],
                records_per_transaction=settings["records_per_transaction"],
                sleep_in_seconds=settings["sleep_in_seconds"],
                backup_prefix=backup_prefix,
            )
            corrected.append(row["live_table_name"])
        return corrected
