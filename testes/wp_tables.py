"""
In-memory SQLite copies of the WordPress core tables used by the tests.

Both the local (``wp_``) and live (``live_``) table sets are created in the
same database, like on a staging server where the live dump is imported
under its own prefix.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, List, Optional

from content_diff.database import Database, quote_identifier

LOCAL = "wp_"
LIVE = "live_"

DEFAULT_COLLATION = "utf8mb4_unicode_520_ci"

SCHEMA = """
CREATE TABLE {p}posts (
    ID INTEGER PRIMARY KEY AUTOINCREMENT,
    post_author INTEGER NOT NULL DEFAULT 0,
    post_date TEXT NOT NULL DEFAULT '2020-01-01 00:00:00',
    post_content TEXT NOT NULL DEFAULT '',
    post_title TEXT NOT NULL DEFAULT '',
    post_excerpt TEXT NOT NULL DEFAULT '',
    post_status TEXT NOT NULL DEFAULT 'publish',
    post_name TEXT NOT NULL DEFAULT '',
    post_modified TEXT NOT NULL DEFAULT '2020-01-01 00:00:00',
    post_parent INTEGER NOT NULL DEFAULT 0,
    guid TEXT NOT NULL DEFAULT '',
    post_type TEXT NOT NULL DEFAULT 'post',
    comment_count INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE {p}postmeta (
    meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id INTEGER NOT NULL DEFAULT 0,
    meta_key TEXT,
    meta_value TEXT
);
CREATE TABLE {p}users (
    ID INTEGER PRIMARY KEY AUTOINCREMENT,
    user_login TEXT NOT NULL DEFAULT '',
    user_email TEXT NOT NULL DEFAULT '',
    display_name TEXT NOT NULL DEFAULT ''
);
CREATE TABLE {p}usermeta (
    umeta_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL DEFAULT 0,
    meta_key TEXT,
    meta_value TEXT
);
CREATE TABLE {p}comments (
    comment_ID INTEGER PRIMARY KEY AUTOINCREMENT,
    comment_post_ID INTEGER NOT NULL DEFAULT 0,
    comment_author TEXT NOT NULL DEFAULT '',
    comment_content TEXT NOT NULL DEFAULT '',
    comment_date TEXT NOT NULL DEFAULT '2020-01-01 00:00:00',
    comment_parent INTEGER NOT NULL DEFAULT 0,
    user_id INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE {p}commentmeta (
    meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
    comment_id INTEGER NOT NULL DEFAULT 0,
    meta_key TEXT,
    meta_value TEXT
);
CREATE TABLE {p}terms (
    term_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    slug TEXT NOT NULL DEFAULT '',
    term_group INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE {p}termmeta (
    meta_id INTEGER PRIMARY KEY AUTOINCREMENT,
    term_id INTEGER NOT NULL DEFAULT 0,
    meta_key TEXT,
    meta_value TEXT
);
CREATE TABLE {p}term_taxonomy (
    term_taxonomy_id INTEGER PRIMARY KEY AUTOINCREMENT,
    term_id INTEGER NOT NULL DEFAULT 0,
    taxonomy TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    parent INTEGER NOT NULL DEFAULT 0,
    count INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE {p}term_relationships (
    object_id INTEGER NOT NULL DEFAULT 0,
    term_taxonomy_id INTEGER NOT NULL DEFAULT 0,
    term_order INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (object_id, term_taxonomy_id)
);
CREATE TABLE {p}options (
    option_id INTEGER PRIMARY KEY AUTOINCREMENT,
    option_name TEXT NOT NULL DEFAULT '',
    option_value TEXT NOT NULL DEFAULT ''
);
CREATE TABLE {p}links (
    link_id INTEGER PRIMARY KEY AUTOINCREMENT,
    link_url TEXT NOT NULL DEFAULT ''
);
"""


class SQLiteDatabase(Database):
    """:class:`Database` over SQLite, with collations faked per table."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        super().__init__(connection, paramstyle="qmark")
        self.collations: Dict[str, str] = {}

    def get_tables(self) -> List[str]:
        return self.get_col("SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name")

    def get_table_collation(self, table: str) -> Optional[str]:
        if not self.table_exists(table):
            return None
        return self.collations.get(table, DEFAULT_COLLATION)

    def get_columns(self, table: str) -> List[str]:
        return [row["name"] for row in self.get_results(f"PRAGMA table_info({quote_identifier(table)})")]

    def rename_table(self, table: str, new_name: str) -> None:
        self.query(f"ALTER TABLE {quote_identifier(table)} RENAME TO {quote_identifier(new_name)}")
        if table in self.collations:
            self.collations[new_name] = self.collations.pop(table)

    def create_table_like(self, table: str, template: str) -> None:
        sql = self.get_var("SELECT sql FROM sqlite_master WHERE type = 'table' AND name = %s", [template])
        if sql is None:
            raise sqlite3.OperationalError(f"no such table: {template}")
        self.query(f"CREATE TABLE {quote_identifier(table)} {sql[sql.index('('):]}")
        self.collations[table] = self.collations.get(template, DEFAULT_COLLATION)

    def copy_rows(self, target: str, source: str, columns, offset: int, limit: int) -> int:
        cols = ", ".join(quote_identifier(c) for c in columns)
        sql = (
            f"INSERT INTO {quote_identifier(target)} ({cols}) "
            f"SELECT {cols} FROM {quote_identifier(source)} ORDER BY rowid LIMIT %s OFFSET %s"
        )
        return self.query(sql, [limit, offset])


def create_wp_db(prefixes=(LOCAL, LIVE)) -> SQLiteDatabase:
    connection = sqlite3.connect(":memory:", isolation_level=None)
    for prefix in prefixes:
        connection.executescript(SCHEMA.format(p=prefix))
    db = SQLiteDatabase(connection)
    db.insert(LOCAL + "options", {"option_name": "siteurl", "option_value": "https://local.test"})
    return db


def add(db: Database, table: str, **row: Any) -> int:
    """Insert ``row`` and return its auto increment ID."""
    assert db.insert(table, row) == 1
    return int(db.insert_id)


def add_post(db: Database, prefix: str, **fields: Any) -> int:
    fields.setdefault("post_name", fields.get("post_title", "").lower().replace(" ", "-"))
    return add(db, prefix + "posts", **fields)


def add_term(db: Database, prefix: str, name: str, taxonomy: str, parent: int = 0, description: str = "", **fields: Any) -> Dict[str, int]:
    term_fields = {"name": name, "slug": name.lower().replace(" ", "-")}
    term_fields.update(fields)
    term_id = add(db, prefix + "terms", **term_fields)
    term_taxonomy_id = add(
        db, prefix + "term_taxonomy", term_id=term_id, taxonomy=taxonomy, parent=parent, description=description
    )
    return {"term_id": term_id, "term_taxonomy_id": term_taxonomy_id}


def rows(db: Database, table: str, **where: Any) -> List[Dict[str, Any]]:
    return db.select(table, where)
