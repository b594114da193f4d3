"""
Post-run report over the run ledgers.

The JSON line ledgers of a working directory are loaded into pandas
DataFrames and registered in an in-memory DuckDB database, where they can
be joined: every imported post is listed with the errors and warnings
logged for it.  The result is written to CSV for the operator's review.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Sequence

import duckdb
import pandas as pd

from content_diff.utils.ledger import (
    LOG_ERROR,
    LOG_IMPORTED_POST_IDS,
    LOG_UPDATED_BLOCKS_IDS,
    LOG_UPDATED_FEATURED_IMAGES_IDS,
    LOG_UPDATED_PARENT_IDS,
    RunLedger,
)

REPORT_QUERY = """
SELECT i.post_type,
       i.id_old,
       i.id_new,
       COUNT(e.message) AS error_count,
       string_agg(e.message, ' | ') AS errors
FROM imported i
LEFT JOIN errors e ON e.id_new = i.id_new
GROUP BY i.post_type, i.id_old, i.id_new
ORDER BY i.id_old
"""


def _frame(entries: List[Dict[str, Any]], columns: Sequence[str], int_columns: Sequence[str] = ()) -> pd.DataFrame:
    df = pd.DataFrame([{c: e.get(c) for c in columns} for e in entries], columns=list(columns))
    for column in columns:
        if column in int_columns:
            df[column] = pd.to_numeric(df[column], errors="coerce").astype("Int64")
        else:
            df[column] = df[column].astype("string")
    return df


def _error_rows(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for entry in entries:
        messages = list(entry.get("errors") or [])
        if entry.get("warning"):
            messages.append(f"WARNING: {entry['warning']}")
        if entry.get("error"):
            messages.append(str(entry["error"]))
        for message in messages:
            rows.append({"id_old": entry.get("id_old"), "id_new": entry.get("id_new"), "message": str(message)})
    return rows


def load_ledger_frames(log_dir: str) -> Dict[str, pd.DataFrame]:
    """Load the ledgers of ``log_dir`` as DataFrames keyed by table name."""
    ledger = RunLedger(log_dir)
    return {
        "imported": _frame(
            ledger.read(LOG_IMPORTED_POST_IDS), ["post_type", "id_old", "id_new"], ["id_old", "id_new"]
        ),
        "errors": _frame(_error_rows(ledger.read(LOG_ERROR)), ["id_old", "id_new", "message"], ["id_old", "id_new"]),
        "parents": _frame(
            ledger.read(LOG_UPDATED_PARENT_IDS),
            ["id_old", "id_new", "parent_id_old", "parent_id_new"],
            ["id_old", "id_new", "parent_id_old", "parent_id_new"],
        ),
        "featured_images": _frame(
            ledger.read(LOG_UPDATED_FEATURED_IMAGES_IDS), ["post_id", "id_old", "id_new"], ["post_id", "id_old", "id_new"]
        ),
        "blocks": _frame(ledger.read(LOG_UPDATED_BLOCKS_IDS, ["id_new"]), ["id_new"], ["id_new"]),
    }


def build_ledger_report(log_dir: str, output_csv: Optional[str] = None) -> Dict[str, Any]:
    """Summarize the ledgers of ``log_dir``.

    Parameters
    ----------
    log_dir:
        Working directory of a migration run.
    output_csv:
        Optional path of the per-post CSV to write.

    Returns
    -------
    A dict with ``counts`` (rows per ledger table), ``imported_by_type``
    (imported posts per post type) and ``posts`` (the per-post DataFrame).
    """
    frames = load_ledger_frames(log_dir)
    con = duckdb.connect(database=":memory:")
    try:
        for name, df in frames.items():
            con.register(name, df)
        counts = {name: int(con.execute(f"SELECT COUNT(*) FROM {name}").fetchone()[0]) for name in frames}
        imported_by_type = {
            str(post_type): int(total)
            for post_type, total in con.execute(
                "SELECT post_type, COUNT(*) FROM imported GROUP BY post_type ORDER BY post_type"
            ).fetchall()
        }
        posts = con.execute(REPORT_QUERY).df()
    finally:
        con.close()

    if output_csv:
        directory = os.path.dirname(output_csv)
        if directory:
            os.makedirs(directory, exist_ok=True)
        posts.to_csv(output_csv, index=False)

    return {"counts": counts, "imported_by_type": imported_by_type, "posts": posts}
