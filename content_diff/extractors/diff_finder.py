"""
Finds live posts which are missing from, or newer than, the local tables.

Posts are matched on ``(post_name, post_title, post_status, post_date)``
rather than on ID, since the two databases assign IDs independently.  Only
these identity columns are selected, and attachments are queried apart
from other post types to keep the row lists small.  Matching is done in
Python instead of with a SQL JOIN across the two table sets: the tables
can be large and differently collated, and long JOINs get killed on
hosts with query time limits.

When several local rows share the same identity the first one in table
order is matched first.  Each matched local row is taken out of the pool.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Deque, Dict, Iterable, List, Sequence, Tuple

from content_diff.database import Database, placeholders, quote_identifier
from content_diff.models import ATTACHMENT_POST_TYPE
from content_diff.utils.pre_flight_checks import ConfigurationError, validate_table_prefix

DEFAULT_POST_TYPES = ("post", "page", "attachment")
POST_STATUSES = ("publish", "future", "draft", "pending", "private")
ATTACHMENT_STATUSES = ("inherit",)

IDENTITY_COLUMNS = ("post_name", "post_title", "post_status", "post_date")

Row = Dict[str, Any]


def _identity(row: Row) -> Tuple[Any, ...]:
    return tuple(row.get(c) for c in IDENTITY_COLUMNS)


def _match_rows(live_rows: Sequence[Row], local_rows: Sequence[Row]) -> Tuple[List[Row], List[Tuple[Row, Row]]]:
    """Split ``live_rows`` into unmatched rows and ``(live, local)`` matches."""
    pool: Dict[Tuple[Any, ...], Deque[Row]] = defaultdict(deque)
    for row in local_rows:
        pool[_identity(row)].append(row)

    unmatched: List[Row] = []
    matched: List[Tuple[Row, Row]] = []
    for live_row in live_rows:
        candidates = pool.get(_identity(live_row))
        if candidates:
            matched.append((live_row, candidates.popleft()))
            if not candidates:
                del pool[_identity(live_row)]
        else:
            unmatched.append(live_row)
    return unmatched, matched


def filter_new_live_ids(live_rows: Sequence[Row], local_rows: Sequence[Row]) -> List[int]:
    """IDs of live rows with no matching local row."""
    unmatched, _ = _match_rows(live_rows, local_rows)
    return [int(row["ID"]) for row in unmatched]


def filter_modified_live_ids(live_rows: Sequence[Row], local_rows: Sequence[Row]) -> List[Dict[str, int]]:
    """Matched rows whose live ``post_modified`` is newer than the local one."""
    _, matched = _match_rows(live_rows, local_rows)
    modified: List[Dict[str, int]] = []
    for live_row, local_row in matched:
        live_modified = live_row.get("post_modified")
        local_modified = local_row.get("post_modified")
        if live_modified is None or local_modified is None:
            continue
        if str(live_modified) > str(local_modified):
            modified.append({"live_id": int(live_row["ID"]), "local_id": int(local_row["ID"])})
    return modified


class DiffFinder:
    """Queries identity rows of both table sets and compares them.

    :param db: Database holding both the local and the live tables.
    :param local_prefix: Table prefix of the local tables.
    """

    def __init__(self, db: Database, local_prefix: str = "wp_") -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)

    def get_posts_rows_for_content_diff(
        self, table_prefix: str, post_types: Sequence[str], post_statuses: Sequence[str]
    ) -> List[Row]:
        if not post_types:
            return []
        table = quote_identifier(validate_table_prefix(table_prefix) + "posts")
        sql = (
            "SELECT ID, post_name, post_title, post_status, post_date, post_modified "
            f"FROM {table} "
            f"WHERE post_type IN ({placeholders(len(post_types))}) "
            f"AND post_status IN ({placeholders(len(post_statuses))}) "
            "ORDER BY ID"
        )
        return self.db.get_results(sql, list(post_types) + list(post_statuses))

    def get_live_post_types(self, live_prefix: str) -> List[str]:
        table = quote_identifier(validate_table_prefix(live_prefix) + "posts")
        return [str(t) for t in self.db.get_col(f"SELECT DISTINCT post_type FROM {table}")]

    def validate_post_types(self, live_prefix: str, post_types: Iterable[str]) -> List[str]:
        """Return ``post_types`` if all of them exist in the live posts table."""
        post_types = list(post_types)
        existing = set(self.get_live_post_types(live_prefix))
        unknown = [t for t in post_types if t not in existing]
        if unknown:
            raise ConfigurationError(f"Post types not found in live posts table: {', '.join(unknown)}")
        return post_types

    def _row_sets(self, live_prefix: str, post_types: Sequence[str]):
        # Attachments first, then all the other post types.
        attachment_types = [t for t in post_types if t == ATTACHMENT_POST_TYPE]
        other_types = [t for t in post_types if t != ATTACHMENT_POST_TYPE]
        for types, statuses in ((attachment_types, ATTACHMENT_STATUSES), (other_types, POST_STATUSES)):
            if not types:
                continue
            live_rows = self.get_posts_rows_for_content_diff(live_prefix, types, statuses)
            local_rows = self.get_posts_rows_for_content_diff(self.local_prefix, types, statuses)
            yield live_rows, local_rows

    def find_new_ids(self, live_prefix: str, post_types: Sequence[str] = DEFAULT_POST_TYPES) -> List[int]:
        new_ids: List[int] = []
        for live_rows, local_rows in self._row_sets(live_prefix, post_types):
            new_ids.extend(filter_new_live_ids(live_rows, local_rows))
            del live_rows, local_rows
        return new_ids

    def find_modified_ids(self, live_prefix: str, post_types: Sequence[str] = DEFAULT_POST_TYPES) -> List[Dict[str, int]]:
        modified: List[Dict[str, int]] = []
        for live_rows, local_rows in self._row_sets(live_prefix, post_types):
            modified.extend(filter_modified_live_ids(live_rows, local_rows))
            del live_rows, local_rows
        return modified

    def find_diff(self, live_prefix: str, post_types: Sequence[str] = DEFAULT_POST_TYPES):
        """Return ``(new_ids, modified_pairs)`` from a single pass over the rows."""
        new_ids: List[int] = []
        modified: List[Dict[str, int]] = []
        for live_rows, local_rows in self._row_sets(live_prefix, post_types):
            new_ids.extend(filter_new_live_ids(live_rows, local_rows))
            modified.extend(filter_modified_live_ids(live_rows, local_rows))
            del live_rows, local_rows
        return new_ids, modified
