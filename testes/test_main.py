import os
import sys

import pytest

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

pytest.importorskip("bs4")
pytest.importorskip("duckdb")
pytest.importorskip("pandas")

from content_diff.migration_tool import ContentDiffMigrationTool
from main import parse_args, run
from testes.wp_tables import LIVE, add_post


@pytest.fixture
def tool(db, tmp_path):
    config = {"migration": {"live_table_prefix": LIVE, "log_dir": str(tmp_path / "logs")}}
    return ContentDiffMigrationTool(config, db=db, sleep=lambda seconds: None)


def test_subcommands_parse():
    args = parse_args(["correct-collations", "--live-table-prefix", "live_wp_", "--mode", "calm"])
    assert args.command == "correct-collations"
    assert args.mode == "calm"
    with pytest.raises(SystemExit):
        parse_args(["correct-collations", "--mode", "reckless"])
    with pytest.raises(SystemExit):
        parse_args([])


def test_search_then_migrate_from_the_command_line(db, tool, tmp_path):
    add_post(db, LIVE, ID=3, post_title="From live")
    work = str(tmp_path / "work")

    run(parse_args(["search-new-content", "--export-dir", work, "--post-types-csv", "post"]), tool)
    run(parse_args(["migrate-live-content", "--import-dir", work, "--yes"]), tool)

    assert db.get_var("SELECT COUNT(*) FROM wp_posts WHERE post_title = %s", ["From live"]) == 1


def test_display_collations_prints_table(db, tool, capsys):
    db.collations[LIVE + "users"] = "latin1_swedish_ci"
    run(parse_args(["display-collations-comparison", "--different-collations-only"]), tool)
    out = capsys.readouterr().out
    assert "live_users" in out
    assert "latin1_swedish_ci" in out
    assert "live_posts" not in out
