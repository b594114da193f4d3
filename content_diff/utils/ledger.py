"""
Run ledger: append-only progress logs that make every phase resumable.

Each phase of a migration appends to its own file in the working
directory.  Lines are either plain text (the CSV worklist of live IDs and
``Starting <timestamp>.`` headers) or a single JSON object.  On restart the
files are replayed to rebuild the "already done" sets; lines which are not
valid JSON objects are skipped rather than treated as fatal.

The log file names are module constants:

``LOG_IDS_CSV``
    CSV of live post IDs which do not exist locally.
``LOG_IDS_MODIFIED``
    ``{"live_id", "local_id"}`` pairs of posts modified on live.
``LOG_IMPORTED_POST_IDS``
    ``{"post_type", "id_old", "id_new"}`` for every imported post.
``LOG_UPDATED_PARENT_IDS``, ``LOG_DELETED_MODIFIED_IDS``,
``LOG_UPDATED_FEATURED_IMAGES_IDS``, ``LOG_UPDATED_BLOCKS_IDS``,
``LOG_ERROR``, ``LOG_RECREATED_CATEGORIES``
    One file per remaining phase.
"""

from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from content_diff.models import ImportedPost, ImportMap

LOG_IDS_CSV = "content-diff__new-ids-csv.log"
LOG_IDS_MODIFIED = "content-diff__modified-ids.log"
LOG_IMPORTED_POST_IDS = "content-diff__imported-post-ids.log"
LOG_UPDATED_PARENT_IDS = "content-diff__updated-parent-ids.log"
LOG_DELETED_MODIFIED_IDS = "content-diff__deleted-modified-ids.log"
LOG_UPDATED_FEATURED_IMAGES_IDS = "content-diff__updated-feat-imgs-ids.log"
LOG_UPDATED_BLOCKS_IDS = "content-diff__wp-blocks-ids-updates.log"
LOG_ERROR = "content-diff__err.log"
LOG_RECREATED_CATEGORIES = "content-diff__recreated_categories.log"

# Ledgers that get a "Starting ..." header at the beginning of every migration run.
RUN_LOGS = (
    LOG_IMPORTED_POST_IDS,
    LOG_UPDATED_PARENT_IDS,
    LOG_DELETED_MODIFIED_IDS,
    LOG_UPDATED_FEATURED_IMAGES_IDS,
    LOG_UPDATED_BLOCKS_IDS,
    LOG_ERROR,
    LOG_RECREATED_CATEGORIES,
)


def _write_line(path: str, line: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(line)
        f.write("\n")


def write_jsonl(path: str, data: Dict[str, Any]) -> None:
    """Append ``data`` as a JSON object followed by a newline to ``path``."""
    _write_line(path, json.dumps(data, ensure_ascii=False, default=str))


def read_jsonl(path: str, keys: Optional[Iterable[str]] = None) -> Optional[List[Dict[str, Any]]]:
    """Read the JSON object lines of ``path``.

    Parameters
    ----------
    path:
        Ledger file to read.
    keys:
        When given, only these keys are kept from each entry.  Entries which
        have none of them are dropped.

    Returns
    -------
    ``None`` if the file does not exist, otherwise the list of entries.
    """
    if not os.path.exists(path):
        return None
    keys = list(keys) if keys is not None else None
    entries: List[Dict[str, Any]] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict):
                continue
            if keys is not None:
                data = {k: data[k] for k in keys if k in data}
                if not data:
                    continue
            entries.append(data)
    return entries


def read_ids_csv(path: str) -> List[int]:
    """Read a CSV of integer IDs, possibly spread over several lines."""
    ids: List[int] = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            for value in line.strip().split(","):
                value = value.strip()
                if not value:
                    continue
                if not value.isdigit():
                    raise ValueError(f"Invalid ID {value!r} in {path}")
                ids.append(int(value))
    return ids


class RunLedger:
    """The family of ledger files in one working directory."""

    def __init__(self, log_dir: str) -> None:
        self.log_dir = log_dir

    def path(self, name: str) -> str:
        return os.path.join(self.log_dir, name)

    def exists(self, name: str) -> bool:
        return os.path.exists(self.path(name))

    def write(self, name: str, entry: Dict[str, Any]) -> None:
        write_jsonl(self.path(name), entry)

    def write_text(self, name: str, text: str) -> None:
        _write_line(self.path(name), text)

    def write_ids_csv(self, name: str, ids: Iterable[int]) -> None:
        _write_line(self.path(name), ",".join(str(i) for i in ids))

    def read(self, name: str, keys: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        return read_jsonl(self.path(name), keys) or []

    def read_values(self, name: str, key: str) -> Set[Any]:
        return {entry[key] for entry in self.read(name, [key])}

    def remove(self, name: str) -> None:
        if self.exists(name):
            os.remove(self.path(name))

    def start_run(self, names: Iterable[str] = RUN_LOGS) -> None:
        """Append a ``Starting <timestamp>.`` header to each ledger."""
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        for name in names:
            self.write_text(name, f"Starting {ts}.")

    def log_error(self, entry: Dict[str, Any]) -> None:
        self.write(LOG_ERROR, entry)


class ImportedPostsLedger:
    """Answers "has live post X already been imported?" for a run.

    Backed by :data:`LOG_IMPORTED_POST_IDS`.  The mapping is loaded once and
    kept in sync as new imports are recorded, so an old ID can never be
    recorded twice.
    """

    def __init__(self, ledger: RunLedger) -> None:
        self.ledger = ledger
        self._import_map = ImportMap()
        self._imported: List[ImportedPost] = []
        for entry in ledger.read(LOG_IMPORTED_POST_IDS, ["post_type", "id_old", "id_new"]):
            if not {"post_type", "id_old", "id_new"} <= entry.keys():
                continue
            try:
                imported = ImportedPost(str(entry["post_type"]), int(entry["id_old"]), int(entry["id_new"]))
            except (TypeError, ValueError):
                continue
            if imported.id_old in self._import_map:
                continue
            self._import_map.add(imported.post_type, imported.id_old, imported.id_new)
            self._imported.append(imported)

    def is_imported(self, id_old: int) -> bool:
        return id_old in self._import_map

    def record(self, post_type: str, id_old: int, id_new: int) -> ImportedPost:
        imported = ImportedPost(post_type, id_old, id_new)
        self._import_map.add(post_type, id_old, id_new)
        self._imported.append(imported)
        self.ledger.write(LOG_IMPORTED_POST_IDS, imported.to_dict())
        return imported

    @property
    def import_map(self) -> ImportMap:
        return self._import_map

    @property
    def imported(self) -> List[ImportedPost]:
        return list(self._imported)
