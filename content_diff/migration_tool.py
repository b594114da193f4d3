"""
High-level orchestration of the live to local content diff migration.

This module defines a :class:`ContentDiffMigrationTool` class that wires
the extractors, migrators, parsers and utilities around one database
handle and runs them as the command line phases:

``search_new_content``
    Compare live and local posts and write the worklist of live IDs.
``migrate_live_content``
    Validate tables and categories, import every post of the worklist with
    its related rows, then fix parents, featured images and attachment IDs
    in content.  Every step is recorded in the run ledger so an
    interrupted run can simply be started again.
``fix_image_ids``
    Repair ``<img>`` attachment IDs of local posts from their file URLs.
``display_collations`` / ``correct_collations``
    Inspect and repair collations of the live tables.
``ledger_report``
    Summarize the ledgers of a run.

Configuration is supplied via a JSON file path or directly as a
dictionary.  The ``database`` section holds the connection settings, the
``migration`` section the table prefixes and phase options.  The database
handle can also be passed in directly, in which case no connection is
opened by the tool.
"""

from __future__ import annotations

import json
import os
import time
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from content_diff.database import Database, MySQLDatabase, RowInsertError, placeholders, quote_identifier
from content_diff.extractors.diff_finder import DEFAULT_POST_TYPES, DiffFinder
from content_diff.extractors.post_data import PostDataFetcher
from content_diff.migrators.categories import CategoryTreeMigrator
from content_diff.migrators.collations import COLLATION_MODES, DEFAULT_BACKUP_PREFIX, CollationReconciler
from content_diff.migrators.content_updater import ContentUpdater
from content_diff.migrators.importer import PostImporter
from content_diff.migrators.parents import SAVED_META_LIVE_POST_ID, ParentIdsFixer
from content_diff.models import ATTACHMENT_POST_TYPE
from content_diff.parsers.images import get_all_image_hostnames
from content_diff.utils.ledger import (
    LOG_DELETED_MODIFIED_IDS,
    LOG_ERROR,
    LOG_IDS_CSV,
    LOG_IDS_MODIFIED,
    LOG_IMPORTED_POST_IDS,
    LOG_RECREATED_CATEGORIES,
    LOG_UPDATED_BLOCKS_IDS,
    LOG_UPDATED_FEATURED_IMAGES_IDS,
    LOG_UPDATED_PARENT_IDS,
    ImportedPostsLedger,
    RunLedger,
    read_ids_csv,
)
from content_diff.utils.pre_flight_checks import (
    CollationMismatchError,
    ConfigurationError,
    PreFlightCheckError,
    validate_core_wp_db_tables,
    validate_table_prefix,
)
from content_diff.utils.progress import ProgressMeter
from content_diff.utils.report import build_ledger_report

LOG_FIX_IMAGE_IDS = "content-diff__fix-image-ids.log"


def _confirm_from_input(question: str) -> bool:
    return input(f"{question} [y/n] ").strip().lower() in ("y", "yes")


class ContentDiffMigrationTool:
    """
    Holds configuration, the database handle and the migration components.

    :param config: Configuration dictionary.
    :param config_file: Path of a JSON configuration file, used instead of
        ``config`` when it exists.
    :param db: Database handle; when omitted a :class:`MySQLDatabase` is
        opened from the ``database`` configuration on first use.
    :param confirm: Callable asking the operator a yes/no question.
    :param sleep: Pause function, used after deleting posts and between
        batches of a collation repair.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        db: Optional[Database] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if config_file and os.path.exists(config_file):
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        elif config is None:
            config = {}

        config.setdefault("database", {})
        config["database"].setdefault("host", os.getenv("CONTENT_DIFF_DB_HOST", "localhost"))
        config["database"].setdefault("port", int(os.getenv("CONTENT_DIFF_DB_PORT", "3306")))
        config["database"].setdefault("user", os.getenv("CONTENT_DIFF_DB_USER", ""))
        config["database"].setdefault("password", os.getenv("CONTENT_DIFF_DB_PASSWORD", ""))
        config["database"].setdefault("name", os.getenv("CONTENT_DIFF_DB_NAME", ""))
        config["database"].setdefault("charset", "utf8mb4")

        config.setdefault("migration", {})
        config["migration"].setdefault("local_table_prefix", "wp_")
        config["migration"].setdefault("live_table_prefix", "")
        config["migration"].setdefault("log_dir", os.path.join("reports", "content-diff"))
        config["migration"].setdefault("post_types", list(DEFAULT_POST_TYPES))
        config["migration"].setdefault("auto_correct_collations", True)
        config["migration"].setdefault("collation_mode", "generous")
        config["migration"].setdefault("collation_skip_tables", ["options"])
        config["migration"].setdefault("collation_backup_prefix", DEFAULT_BACKUP_PREFIX)

        self.config = config
        self.local_prefix = validate_table_prefix(config["migration"]["local_table_prefix"])
        self.db = db
        self.confirm = confirm or _confirm_from_input
        self.sleep = sleep

    def log_message(self, message: str, level: str = "INFO") -> None:
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{level}] {message}")
        log_dir = self.config["migration"]["log_dir"]
        os.makedirs(log_dir, exist_ok=True)
        with open(os.path.join(log_dir, "migration.log"), "a", encoding="utf-8") as f:
            f.write(f"{ts} {level}: {message}\n")

    def connect(self) -> Database:
        if self.db is None:
            self.db = MySQLDatabase.from_config(self.config["database"])
        return self.db

    def close(self) -> None:
        if self.db is not None:
            self.db.close()
            self.db = None

    def _live_prefix(self, live_prefix: Optional[str]) -> str:
        prefix = live_prefix or self.config["migration"]["live_table_prefix"]
        if not prefix:
            raise ConfigurationError("Live table prefix is required.")
        validate_table_prefix(prefix)
        if prefix == self.local_prefix:
            raise ConfigurationError("Live table prefix must differ from the local table prefix.")
        return prefix

    def _reconciler(self) -> CollationReconciler:
        return CollationReconciler(self.connect(), self.local_prefix, log=self.log_message, sleep=self.sleep)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate_db_tables(self, live_prefix: str, skip_tables: Optional[Iterable[str]] = None) -> None:
        """Check core tables exist and collations match, repairing them if configured.

        :raises MissingTablesError: If a core table is missing.
        :raises CollationMismatchError: If collations differ and auto
            correction is disabled or did not help.
        """
        settings = self.config["migration"]
        if skip_tables is None:
            skip_tables = settings["collation_skip_tables"]
        skip_tables = list(skip_tables)
        validate_core_wp_db_tables(self.connect(), self.local_prefix, live_prefix, skip_tables)

        reconciler = self._reconciler()
        try:
            reconciler.validate(live_prefix, skip_tables)
        except CollationMismatchError as e:
            if not settings["auto_correct_collations"]:
                raise
            mode = settings["collation_mode"]
            self.log_message(f"{e}. Correcting collations in '{mode}' mode.", level="WARNING")
            reconciler.correct_collations(live_prefix, mode, skip_tables, settings["collation_backup_prefix"])
            reconciler.validate(live_prefix, skip_tables)
        self.log_message("Core tables and collations validated.")

    def validate_categories(self, live_prefix: str) -> None:
        """Reset parents of categories whose parent term does not exist, after confirmation."""
        categories = CategoryTreeMigrator(self.connect(), self.local_prefix)
        for prefix in (self.local_prefix, live_prefix):
            orphans = categories.get_categories_with_nonexistent_parents(prefix)
            if not orphans:
                continue
            listing = ", ".join(f"{o['name']} (term_id {o['term_id']}, parent {o['parent']})" for o in orphans)
            self.log_message(f"Categories in {prefix}term_taxonomy with nonexistent parents: {listing}", level="WARNING")
            if not self.confirm(f"Reset the parent of these {len(orphans)} categories in {prefix}term_taxonomy to 0?"):
                raise PreFlightCheckError("Categories with nonexistent parents must be fixed before migrating.")
            categories.reset_categories_parents(prefix, [int(o["term_taxonomy_id"]) for o in orphans])
            self.log_message(f"Reset parents of {len(orphans)} categories in {prefix}term_taxonomy.")

    # ------------------------------------------------------------------
    # search-new-content
    # ------------------------------------------------------------------
    def search_new_content(
        self, export_dir: str, live_prefix: Optional[str] = None, post_types: Optional[Sequence[str]] = None
    ) -> Tuple[List[int], List[Dict[str, int]]]:
        """Write the IDs of new and modified live posts to ``export_dir``."""
        live_prefix = self._live_prefix(live_prefix)
        post_types = list(post_types or self.config["migration"]["post_types"])
        self.validate_db_tables(live_prefix)

        finder = DiffFinder(self.connect(), self.local_prefix)
        finder.validate_post_types(live_prefix, post_types)
        self.log_message(f"Searching for new content of types {', '.join(post_types)}...")
        new_ids, modified = finder.find_diff(live_prefix, post_types)

        ledger = RunLedger(export_dir)
        ledger.remove(LOG_IDS_CSV)
        ledger.remove(LOG_IDS_MODIFIED)
        ledger.write_ids_csv(LOG_IDS_CSV, new_ids)
        for pair in modified:
            ledger.write(LOG_IDS_MODIFIED, pair)

        self.log_message(
            f"Found {len(new_ids)} new and {len(modified)} modified live posts. "
            f"See {ledger.path(LOG_IDS_CSV)} and {ledger.path(LOG_IDS_MODIFIED)}."
        )
        return new_ids, modified

    # ------------------------------------------------------------------
    # migrate-live-content
    # ------------------------------------------------------------------
    def migrate_live_content(self, import_dir: str, live_prefix: Optional[str] = None) -> Dict[str, Any]:
        """Import the live posts listed in ``import_dir`` and fix their references.

        :raises ConfigurationError: If the worklist is missing or malformed.
        """
        live_prefix = self._live_prefix(live_prefix)
        ledger = RunLedger(import_dir)
        if not ledger.exists(LOG_IDS_CSV):
            raise ConfigurationError(f"File {ledger.path(LOG_IDS_CSV)} not found, run search-new-content first.")
        try:
            live_ids = read_ids_csv(ledger.path(LOG_IDS_CSV))
        except ValueError as e:
            raise ConfigurationError(f"Malformed worklist: {e}") from e
        modified = [
            m for m in ledger.read(LOG_IDS_MODIFIED, ["live_id", "local_id"]) if {"live_id", "local_id"} <= m.keys()
        ]

        self.validate_db_tables(live_prefix)
        ledger.start_run()

        self.validate_categories(live_prefix)
        category_term_id_updates = self.recreate_categories(live_prefix, ledger)

        imported = ImportedPostsLedger(ledger)
        self.delete_modified_posts(modified, imported, ledger)

        worklist = list(dict.fromkeys(live_ids + [int(m["live_id"]) for m in modified]))
        del live_ids, modified

        self.import_posts(worklist, live_prefix, category_term_id_updates, imported, ledger)
        del worklist

        self.update_post_parent_ids(live_prefix, imported, ledger)
        self.update_featured_image_ids(imported, ledger)
        self.update_attachment_ids_in_blocks(imported, ledger)

        log_files = [
            ledger.path(name)
            for name in (
                LOG_IMPORTED_POST_IDS,
                LOG_ERROR,
                LOG_UPDATED_PARENT_IDS,
                LOG_DELETED_MODIFIED_IDS,
                LOG_UPDATED_FEATURED_IMAGES_IDS,
                LOG_UPDATED_BLOCKS_IDS,
                LOG_RECREATED_CATEGORIES,
            )
        ]
        self.log_message("Migration finished. Check these log files for errors and warnings:\n- " + "\n- ".join(log_files))
        return {"imported": len(imported.import_map), "import_map": imported.import_map, "log_files": log_files}

    def recreate_categories(self, live_prefix: str, ledger: RunLedger) -> Dict[int, int]:
        self.log_message("Recreating categories...")
        category_term_id_updates = CategoryTreeMigrator(self.connect(), self.local_prefix).recreate_categories(live_prefix)
        ledger.write(
            LOG_RECREATED_CATEGORIES,
            {"category_term_id_updates": {str(k): v for k, v in category_term_id_updates.items()}},
        )
        return category_term_id_updates

    def delete_modified_posts(self, modified: List[Dict[str, Any]], imported: ImportedPostsLedger, ledger: RunLedger) -> List[int]:
        """Delete local copies of modified live posts which are about to be reimported."""
        already_deleted = {int(v) for v in ledger.read_values(LOG_DELETED_MODIFIED_IDS, "local_id")}
        to_delete = [
            m for m in modified if not imported.is_imported(int(m["live_id"])) and int(m["local_id"]) not in already_deleted
        ]
        if not to_delete:
            return []
        self.log_message(f"Deleting {len(to_delete)} local posts which were modified on live...")
        importer = PostImporter(self.connect(), self.local_prefix)
        deleted: List[int] = []
        for pair in to_delete:
            if importer.delete_posts([int(pair["local_id"])]):
                deleted.append(int(pair["local_id"]))
                ledger.write(LOG_DELETED_MODIFIED_IDS, {"live_id": int(pair["live_id"]), "local_id": int(pair["local_id"])})
        self.sleep(1)
        return deleted

    def import_posts(
        self,
        live_ids: Sequence[int],
        live_prefix: str,
        category_term_id_updates: Dict[int, int],
        imported: ImportedPostsLedger,
        ledger: RunLedger,
    ) -> List[int]:
        """Import each live post not yet recorded in the imported posts ledger."""
        db = self.connect()
        fetcher = PostDataFetcher(db)
        importer = PostImporter(db, self.local_prefix)
        meter = ProgressMeter(len(live_ids), self.log_message)
        self.log_message(f"Importing {len(live_ids)} posts...")

        new_ids: List[int] = []
        for position, id_old in enumerate(live_ids, start=1):
            meter.advance(position)
            if imported.is_imported(id_old):
                continue
            try:
                data = fetcher.get_post_data(id_old, live_prefix)
                id_new = importer.insert_post(data.post)
            except Exception as e:
                # Not recorded as imported: the next run tries this post again.
                self.log_message(f"Could not import live post {id_old}: {e}", "ERROR")
                ledger.log_error({"id_old": id_old, "errors": [str(e)]})
                continue
            # Recorded before the related rows go in, so a restart never inserts it twice.
            imported.record(data.post.post_type, id_old, id_new)
            new_ids.append(id_new)

            errors = importer.import_post_data(id_new, data, category_term_id_updates)
            meta = {"post_id": id_new, "meta_key": SAVED_META_LIVE_POST_ID, "meta_value": str(id_old)}
            try:
                if db.insert(self.local_prefix + "postmeta", meta) != 1:
                    raise RowInsertError("no row inserted")
            except Exception as e:
                errors.append(f"Error saving {SAVED_META_LIVE_POST_ID} meta for post ID {id_new}: {e}")
            if errors:
                ledger.log_error({"id_old": id_old, "id_new": id_new, "errors": errors})
        return new_ids

    def update_post_parent_ids(self, live_prefix: str, imported: ImportedPostsLedger, ledger: RunLedger) -> List[Dict[str, int]]:
        ids_old = [p.id_old for p in imported.imported]
        self.log_message(f"Updating parent IDs of {len(ids_old)} imported posts...")
        fixer = ParentIdsFixer(self.connect(), self.local_prefix, live_prefix)
        meter = ProgressMeter(len(ids_old), self.log_message)
        return fixer.update_post_parent_ids(
            ids_old,
            imported.import_map,
            skip_ids_new={int(v) for v in ledger.read_values(LOG_UPDATED_PARENT_IDS, "id_new")},
            on_update=lambda update: ledger.write(LOG_UPDATED_PARENT_IDS, update),
            on_warning=ledger.log_error,
            on_progress=meter.advance,
        )

    def update_featured_image_ids(self, imported: ImportedPostsLedger, ledger: RunLedger) -> List[Dict[str, int]]:
        done = {int(v) for v in ledger.read_values(LOG_UPDATED_FEATURED_IMAGES_IDS, "post_id")}
        post_ids = [p.id_new for p in imported.imported if p.post_type != ATTACHMENT_POST_TYPE and p.id_new not in done]
        self.log_message(f"Updating featured image IDs of {len(post_ids)} posts...")
        updates, warnings = ContentUpdater(self.connect(), self.local_prefix).update_featured_images(
            post_ids,
            imported.import_map.attachment,
            on_update=lambda update: ledger.write(LOG_UPDATED_FEATURED_IMAGES_IDS, update),
        )
        for warning in warnings:
            ledger.log_error(warning)
        return updates

    def update_attachment_ids_in_blocks(self, imported: ImportedPostsLedger, ledger: RunLedger) -> List[int]:
        done = {int(v) for v in ledger.read_values(LOG_UPDATED_BLOCKS_IDS, "id_new")}
        post_ids = [p.id_new for p in imported.imported if p.id_new not in done]
        self.log_message(f"Updating attachment IDs in content of {len(post_ids)} posts...")
        updater = ContentUpdater(self.connect(), self.local_prefix)
        meter = ProgressMeter(len(post_ids), self.log_message)
        updated: List[int] = []
        batch = 100
        for start in range(0, len(post_ids), batch):
            updated.extend(
                updater.update_blocks_ids(
                    post_ids[start:start + batch],
                    dict(imported.import_map.attachment),
                    log_path=ledger.path(LOG_UPDATED_BLOCKS_IDS),
                )
            )
            meter.advance(min(start + batch, len(post_ids)))
        return updated

    # ------------------------------------------------------------------
    # fix-image-ids-in-post-content
    # ------------------------------------------------------------------
    def get_posts_ids_for_image_fix(self, post_id_from: Optional[int] = None, post_id_to: Optional[int] = None) -> List[int]:
        if (post_id_from is None) != (post_id_to is None):
            raise ConfigurationError("Both post ID from and post ID to must be provided.")
        sql = (
            f"SELECT ID FROM {quote_identifier(self.local_prefix + 'posts')} "
            f"WHERE post_type = 'post' AND post_status IN ({placeholders(2)})"
        )
        params: List[Any] = ["publish", "draft"]
        if post_id_from is not None:
            sql += " AND ID >= %s AND ID <= %s"
            params += [post_id_from, post_id_to]
        return [int(i) for i in self.connect().get_col(sql + " ORDER BY ID", params)]

    def get_image_hostnames(self, post_ids: Sequence[int]) -> Dict[str, int]:
        rows = ContentUpdater(self.connect(), self.local_prefix).get_posts_contents(post_ids)
        return get_all_image_hostnames(row["post_content"] or "" for row in rows)

    def fix_image_ids(
        self,
        post_ids: Sequence[int],
        local_hostname_aliases: Iterable[str] = (),
        log_path: Optional[str] = None,
    ) -> Dict[int, int]:
        """Fix ``<img>`` attachment IDs of ``post_ids`` one post at a time.

        Returns the accumulated map of wrong to correct attachment IDs.
        """
        aliases = [a for a in local_hostname_aliases if a]
        log_path = log_path or os.path.join(self.config["migration"]["log_dir"], LOG_FIX_IMAGE_IDS)
        updater = ContentUpdater(self.connect(), self.local_prefix)
        known_attachment_ids_updates: Dict[int, int] = {}
        for position, post_id in enumerate(post_ids, start=1):
            self.log_message(f"({position})/({len(post_ids)}) {post_id}")
            updater.update_blocks_ids([post_id], known_attachment_ids_updates, aliases, log_path)
        self.log_message(f"Done. Check {log_path}.")
        return known_attachment_ids_updates

    # ------------------------------------------------------------------
    # Collations
    # ------------------------------------------------------------------
    def display_collations(
        self, live_prefix: Optional[str] = None, skip_tables: Iterable[str] = (), different_only: bool = False
    ) -> List[Dict[str, Any]]:
        reconciler = self._reconciler()
        rows = reconciler.get_collation_comparison(self._live_prefix(live_prefix), skip_tables)
        if different_only:
            rows = reconciler.filter_for_different_collated_tables(rows)
        return rows

    def correct_collations(
        self,
        live_prefix: Optional[str] = None,
        mode: Optional[str] = None,
        skip_tables: Iterable[str] = (),
        backup_prefix: Optional[str] = None,
    ) -> List[str]:
        mode = mode or "cautious"
        if mode not in COLLATION_MODES:
            raise ConfigurationError(f"Unknown mode {mode!r}, use one of: {', '.join(COLLATION_MODES)}")
        live_prefix = self._live_prefix(live_prefix)
        corrected = self._reconciler().correct_collations(
            live_prefix, mode, skip_tables, backup_prefix or self.config["migration"]["collation_backup_prefix"]
        )
        if corrected:
            self.log_message(f"Corrected collations of: {', '.join(corrected)}. Backup tables were kept.")
        else:
            self.log_message("All table collations already match.")
        return corrected

    def ledger_report(self, import_dir: str, output_csv: Optional[str] = None) -> Dict[str, Any]:
        report = build_ledger_report(import_dir, output_csv)
        for name, count in report["counts"].items():
            self.log_message(f"{name}: {count}")
        if output_csv:
            self.log_message(f"Per-post report written to {output_csv}.")
        return report
