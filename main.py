"""
Entry point for the WordPress content diff migrator.

Each phase is a subcommand::

    python main.py search-new-content --export-dir logs --live-table-prefix live_wp_
    python main.py migrate-live-content --import-dir logs --live-table-prefix live_wp_
    python main.py fix-image-ids-in-post-content --local-hostname-aliases-csv cdn.example.com
    python main.py display-collations-comparison --live-table-prefix live_wp_
    python main.py correct-collations --live-table-prefix live_wp_ --mode calm
    python main.py ledger-report --import-dir logs --output logs/report.csv
"""

import argparse
import sys
from typing import List, Optional

import pandas as pd

from content_diff.migration_tool import ContentDiffMigrationTool
from content_diff.migrators.collations import COLLATION_MODES
from content_diff.parsers.images import RELATIVE_URL_PATHS
from content_diff.utils.pre_flight_checks import PreFlightCheckError

CONFIG_FILE = "config/migration_config.json"


def _csv(value: Optional[str]) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Migrates posts created on a live WordPress site into a local copy of its database."
    )
    parser.add_argument("--config", default=CONFIG_FILE, help=f"JSON configuration file (default: {CONFIG_FILE})")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search-new-content", help="Find live posts missing from the local tables.")
    search.add_argument("--export-dir", required=True, help="Directory where the ID logs are written.")
    search.add_argument("--live-table-prefix", help="Table prefix of the live tables, e.g. live_wp_.")
    search.add_argument("--post-types-csv", help="Post types to compare (default: post,page,attachment).")

    migrate = subparsers.add_parser("migrate-live-content", help="Import the live posts found by search-new-content.")
    migrate.add_argument("--import-dir", required=True, help="Directory holding the ID logs; run logs are written here too.")
    migrate.add_argument("--live-table-prefix", help="Table prefix of the live tables.")
    migrate.add_argument("--yes", action="store_true", help="Reset orphaned category parents without asking.")

    fix = subparsers.add_parser(
        "fix-image-ids-in-post-content", help="Fix <img> attachment IDs in local posts using their file URLs."
    )
    fix.add_argument("--post-id-from", type=int, help="First post ID (requires --post-id-to).")
    fix.add_argument("--post-id-to", type=int, help="Last post ID (requires --post-id-from).")
    fix.add_argument(
        "--local-hostname-aliases-csv",
        help="Image hostnames to treat as local, e.g. an S3 bucket hostname. Prompted for when omitted.",
    )
    fix.add_argument("--log-file", help="Log file of the content updates.")

    display = subparsers.add_parser("display-collations-comparison", help="Compare live and local table collations.")
    display.add_argument("--live-table-prefix", help="Table prefix of the live tables.")
    display.add_argument("--skip-tables", help="CSV of core table names (without prefix) to skip.")
    display.add_argument("--different-collations-only", action="store_true", help="Only list mismatched tables.")

    correct = subparsers.add_parser("correct-collations", help="Rebuild live tables with the local collation.")
    correct.add_argument("--live-table-prefix", help="Table prefix of the live tables.")
    correct.add_argument("--mode", choices=sorted(COLLATION_MODES), default="cautious", help="Speed versus host load profile.")
    correct.add_argument("--skip-tables", help="CSV of core table names (without prefix) to skip.")
    correct.add_argument("--backup-table-prefix", help="Prefix of the backup tables (default: collationbak_).")

    report = subparsers.add_parser("ledger-report", help="Summarize the run logs of a migration.")
    report.add_argument("--import-dir", required=True, help="Directory holding the run logs.")
    report.add_argument("--output", help="CSV file for the per-post report.")

    return parser.parse_args(argv)


def _prompt_hostname_aliases(tool: ContentDiffMigrationTool, post_ids: List[int]) -> List[str]:
    tool.log_message("Now searching all posts for used image URL hostnames...")
    hostnames = tool.get_image_hostnames(post_ids)
    hostnames.pop(RELATIVE_URL_PATHS, None)
    tool.log_message("Found following image hosts:\n- " + "\n- ".join(sorted(hostnames)))
    answer = input("Enter additional image hostnames to be treated as local, or leave blank for none (CSV): ")
    return _csv(answer)


def run(args: argparse.Namespace, tool: ContentDiffMigrationTool) -> None:
    if args.command == "search-new-content":
        tool.search_new_content(args.export_dir, args.live_table_prefix, _csv(args.post_types_csv) or None)
    elif args.command == "migrate-live-content":
        if args.yes:
            tool.confirm = lambda question: True
        tool.migrate_live_content(args.import_dir, args.live_table_prefix)
    elif args.command == "fix-image-ids-in-post-content":
        post_ids = tool.get_posts_ids_for_image_fix(args.post_id_from, args.post_id_to)
        if args.local_hostname_aliases_csv is None:
            aliases = _prompt_hostname_aliases(tool, post_ids)
        else:
            aliases = _csv(args.local_hostname_aliases_csv)
        tool.fix_image_ids(post_ids, aliases, args.log_file)
    elif args.command == "display-collations-comparison":
        rows = tool.display_collations(args.live_table_prefix, _csv(args.skip_tables), args.different_collations_only)
        columns = ["table", "core_table_name", "core_table_collation", "live_table_name", "live_table_collation", "match"]
        print(pd.DataFrame(rows, columns=columns).to_string(index=False) if rows else "No tables to display.")
    elif args.command == "correct-collations":
        tool.correct_collations(args.live_table_prefix, args.mode, _csv(args.skip_tables), args.backup_table_prefix)
    elif args.command == "ledger-report":
        report = tool.ledger_report(args.import_dir, args.output)
        if not report["posts"].empty:
            print(report["posts"].to_string(index=False))


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function to run the content diff migrator.
    """
    args = parse_args(argv)
    tool = ContentDiffMigrationTool(config_file=args.config)
    try:
        run(args, tool)
    except PreFlightCheckError as e:
        tool.log_message(str(e), level="ERROR")
        return 1
    finally:
        tool.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
