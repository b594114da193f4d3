import os
import sys

import pytest

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from content_diff.models import DuplicateImportError, ImportMap
from content_diff.utils.ledger import (
    LOG_ERROR,
    LOG_IMPORTED_POST_IDS,
    RUN_LOGS,
    ImportedPostsLedger,
    RunLedger,
    read_ids_csv,
    read_jsonl,
)


def test_read_jsonl_skips_garbage_lines(tmp_path):
    path = tmp_path / "ledger.log"
    path.write_text(
        'Starting 2024-01-01 00:00:00.\n{"a": 1, "b": 2}\n\n{"broken": \n[1, 2]\n{"b": 3}\n', encoding="utf-8"
    )
    assert read_jsonl(str(path)) == [{"a": 1, "b": 2}, {"b": 3}]
    assert read_jsonl(str(path), ["a"]) == [{"a": 1}]
    assert read_jsonl(str(tmp_path / "missing.log")) is None


def test_read_ids_csv(tmp_path):
    path = tmp_path / "ids.log"
    path.write_text("3,1,2\n\n10,\n", encoding="utf-8")
    assert read_ids_csv(str(path)) == [3, 1, 2, 10]

    path.write_text("3,x\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_ids_csv(str(path))


def test_start_run_writes_header_to_every_run_log(tmp_path):
    ledger = RunLedger(str(tmp_path / "nested"))
    ledger.start_run()
    for name in RUN_LOGS:
        content = open(ledger.path(name), encoding="utf-8").read()
        assert content.startswith("Starting ")
        assert ledger.read(name) == []


def test_imported_posts_survive_a_restart(tmp_path):
    ledger = RunLedger(str(tmp_path))
    first_run = ImportedPostsLedger(ledger)
    first_run.record("post", 500, 12)
    first_run.record("attachment", 501, 13)

    ledger.start_run()
    restarted = ImportedPostsLedger(RunLedger(str(tmp_path)))
    assert restarted.is_imported(500)
    assert restarted.is_imported(501)
    assert not restarted.is_imported(502)
    assert restarted.import_map.content == {500: 12}
    assert restarted.import_map.attachment == {501: 13}

    with pytest.raises(DuplicateImportError):
        restarted.record("post", 500, 99)
    assert len(ledger.read(LOG_IMPORTED_POST_IDS)) == 2


def test_imported_ledger_ignores_malformed_and_duplicate_entries(tmp_path):
    ledger = RunLedger(str(tmp_path))
    ledger.write(LOG_IMPORTED_POST_IDS, {"post_type": "post", "id_old": 1, "id_new": 10})
    ledger.write(LOG_IMPORTED_POST_IDS, {"post_type": "post", "id_old": 1, "id_new": 11})
    ledger.write(LOG_IMPORTED_POST_IDS, {"post_type": "post", "id_old": "x", "id_new": 12})
    ledger.write(LOG_IMPORTED_POST_IDS, {"id_old": 2, "id_new": 13})
    ledger.write_text(LOG_IMPORTED_POST_IDS, "{not json")

    imported = ImportedPostsLedger(ledger)
    assert [(p.id_old, p.id_new) for p in imported.imported] == [(1, 10)]


def test_log_error_and_remove(tmp_path):
    ledger = RunLedger(str(tmp_path))
    ledger.log_error({"id_old": 1, "error": "boom"})
    assert ledger.read_values(LOG_ERROR, "error") == {"boom"}
    ledger.remove(LOG_ERROR)
    assert not ledger.exists(LOG_ERROR)
    ledger.remove(LOG_ERROR)


def test_import_map_rejects_a_second_mapping():
    import_map = ImportMap()
    import_map.add("post", 1, 10)
    import_map.add("attachment", 2, 20)
    assert import_map.get(1) == 10
    assert import_map.get(2) == 20
    assert 2 in import_map and len(import_map) == 2
    with pytest.raises(DuplicateImportError):
        import_map.add("attachment", 1, 30)
