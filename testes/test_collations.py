import os
import sys

import pytest

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from content_diff.migrators.collations import COLLATION_MODES, CollationReconciler
from content_diff.utils.pre_flight_checks import (
    CollationMismatchError,
    CollationRepairError,
    MissingTablesError,
    validate_core_wp_db_tables,
)
from testes.wp_tables import DEFAULT_COLLATION, LIVE, LOCAL, add, create_wp_db, rows


def _reconciler(db, sleeps=None, messages=None):
    return CollationReconciler(
        db,
        LOCAL,
        log=lambda message, level="INFO": messages.append((level, message)) if messages is not None else None,
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


def test_matching_collations(db):
    reconciler = _reconciler(db)
    comparison = reconciler.get_collation_comparison(LIVE)
    assert len(comparison) == 12
    assert all(row["match"] == "YES" for row in comparison)
    assert reconciler.are_table_collations_matching(LIVE)
    reconciler.validate(LIVE)


def test_mismatch_is_reported(db):
    db.collations[LIVE + "posts"] = "latin1_swedish_ci"
    reconciler = _reconciler(db)

    different = reconciler.filter_for_different_collated_tables(reconciler.get_collation_comparison(LIVE))
    assert [row["live_table_name"] for row in different] == [LIVE + "posts"]
    assert different[0]["core_table_collation"] == DEFAULT_COLLATION
    assert not reconciler.are_table_collations_matching(LIVE)
    assert reconciler.are_table_collations_matching(LIVE, skip_tables=["posts"])

    with pytest.raises(CollationMismatchError) as excinfo:
        reconciler.validate(LIVE)
    assert excinfo.value.tables == [LIVE + "posts"]


def test_missing_live_tables_are_skipped_and_nothing_to_compare_raises():
    db = create_wp_db(prefixes=(LOCAL,))
    messages = []
    try:
        with pytest.raises(CollationMismatchError):
            _reconciler(db, messages=messages).get_collation_comparison(LIVE)
        assert all(level == "WARNING" for level, _ in messages)
        assert len(messages) == 12
    finally:
        db.close()


def test_table_is_rebuilt_in_batches(db):
    for i in range(5):
        add(db, LIVE + "postmeta", meta_id=100 + i, post_id=1, meta_key=f"k{i}", meta_value="v")
    db.collations[LIVE + "postmeta"] = "latin1_swedish_ci"
    sleeps = []

    copied = _reconciler(db, sleeps=sleeps).copy_table_data_using_proper_collation(
        LIVE, "postmeta", records_per_transaction=2, sleep_in_seconds=3
    )

    assert copied == 5
    assert sleeps == [3, 3]
    assert [r["meta_id"] for r in rows(db, LIVE + "postmeta")] == [100, 101, 102, 103, 104]
    assert db.get_table_collation(LIVE + "postmeta") == DEFAULT_COLLATION
    assert db.get_table_collation("collationbak_" + LIVE + "postmeta") == "latin1_swedish_ci"
    assert len(rows(db, "collationbak_" + LIVE + "postmeta")) == 5


def test_correct_collations_uses_mode_and_returns_corrected_tables(db):
    add(db, LIVE + "posts", ID=9, post_title="Live")
    db.collations[LIVE + "posts"] = "latin1_swedish_ci"
    db.collations[LIVE + "options"] = "latin1_swedish_ci"
    sleeps = []
    reconciler = _reconciler(db, sleeps=sleeps)

    corrected = reconciler.correct_collations(LIVE, mode="calm", skip_tables=["options"])

    assert corrected == [LIVE + "posts"]
    assert sleeps == []
    assert rows(db, LIVE + "posts")[0]["post_title"] == "Live"
    assert reconciler.are_table_collations_matching(LIVE, skip_tables=["options"])
    assert not reconciler.are_table_collations_matching(LIVE)


def test_empty_table_is_recreated_without_copying(db):
    db.collations[LIVE + "links"] = "latin1_swedish_ci"
    assert _reconciler(db).copy_table_data_using_proper_collation(LIVE, "links") == 0
    assert db.table_exists(LIVE + "links")
    assert db.get_table_collation(LIVE + "links") == DEFAULT_COLLATION


def test_existing_backup_table_stops_the_rebuild(db):
    db.create_table_like("collationbak_" + LIVE + "links", LIVE + "links")
    with pytest.raises(CollationRepairError):
        _reconciler(db).copy_table_data_using_proper_collation(LIVE, "links")
    assert db.table_exists(LIVE + "links")


def test_unknown_mode(db):
    with pytest.raises(ValueError):
        _reconciler(db).correct_collations(LIVE, mode="reckless")


def test_modes():
    assert COLLATION_MODES["aggressive"] == {"records_per_transaction": 15000, "sleep_in_seconds": 1}
    assert COLLATION_MODES["calm"]["records_per_transaction"] < COLLATION_MODES["cautious"]["records_per_transaction"]


def test_core_tables_validation(db):
    validate_core_wp_db_tables(db, LOCAL, LIVE)
    db.query("DROP TABLE live_links")
    validate_core_wp_db_tables(db, LOCAL, LIVE, skip_tables=["links"])
    with pytest.raises(MissingTablesError) as excinfo:
        validate_core_wp_db_tables(db, LOCAL, LIVE)
    assert excinfo.value.tables == ["live_links"]
