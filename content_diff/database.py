"""
Relational store access for the content diff migration.

Both the live and the local WordPress table sets are reached through a
single :class:`Database` handle; they only differ by table prefix.  The
base class works with any DB-API 2 connection and provides the small set
of row level helpers the migration needs (``get_results``, ``insert``,
``update``, ``delete`` and friends).  SQL is written with ``%s``
placeholders and converted when the driver uses a different parameter
style.

:class:`MySQLDatabase` connects with :mod:`pymysql` and adds the schema
introspection and DDL statements used by the collation reconciler.

Usage example::

    db = MySQLDatabase.from_config({"host": "localhost", "user": "wp",
                                    "password": "secret", "name": "wordpress"})
    rows = db.get_results("SELECT ID FROM wp_posts WHERE post_type = %s", ["post"])
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")


class RowInsertError(RuntimeError):
    """Raised when an insert does not affect exactly one row."""


def quote_identifier(name: str) -> str:
    """Return ``name`` wrapped in backticks after validating it.

    Table and column names cannot be bound as query parameters, so they are
    restricted to ASCII letters, digits and underscores.
    """
    if not name or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f"`{name}`"


def placeholders(count: int) -> str:
    """Return ``count`` comma separated ``%s`` placeholders for an ``IN`` list."""
    return ", ".join(["%s"] * count)


class Database:
    """Thin wrapper around a DB-API 2 connection.

    :param connection: An open connection with autocommit enabled.
    :param paramstyle: ``"format"`` (``%s``) or ``"qmark"`` (``?``).
    """

    def __init__(self, connection: Any, *, paramstyle: str = "format") -> None:
        self.connection = connection
        self.paramstyle = paramstyle
        self.insert_id: Optional[int] = None

    # ------------------------------------------------------------------
    # Raw queries
    # ------------------------------------------------------------------
    def _prepare(self, sql: str) -> str:
        if self.paramstyle == "qmark":
            return sql.replace("%s", "?")
        return sql

    def _execute(self, sql: str, params: Optional[Sequence[Any]] = None):
        cursor = self.connection.cursor()
        if params:
            cursor.execute(self._prepare(sql), tuple(params))
        else:
            cursor.execute(self._prepare(sql))
        return cursor

    def get_results(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a ``SELECT`` and return every row as a column keyed dict."""
        cursor = self._execute(sql, params)
        try:
            columns = [d[0] for d in cursor.description or []]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def get_row(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        rows = self.get_results(sql, params)
        return rows[0] if rows else None

    def get_col(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Any]:
        cursor = self._execute(sql, params)
        try:
            return [row[0] for row in cursor.fetchall()]
        finally:
            cursor.close()

    def get_var(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        col = self.get_col(sql, params)
        return col[0] if col else None

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run a statement and return the number of affected rows."""
        cursor = self._execute(sql, params)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------
    def select(self, table: str, where: Dict[str, Any], columns: Iterable[str] = ("*",)) -> List[Dict[str, Any]]:
        cols = ", ".join(c if c == "*" else quote_identifier(c) for c in columns)
        sql = f"SELECT {cols} FROM {quote_identifier(table)}"
        params: List[Any] = []
        if where:
            sql += " WHERE " + " AND ".join(f"{quote_identifier(k)} = %s" for k in where)
            params = list(where.values())
        return self.get_results(sql, params)

    def insert(self, table: str, row: Dict[str, Any]) -> int:
        """Insert ``row`` and return the number of affected rows.

        The auto increment ID of the new row is stored in :attr:`insert_id`.
        """
        columns = ", ".join(quote_identifier(k) for k in row)
        sql = f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders(len(row))})"
        cursor = self._execute(sql, list(row.values()))
        try:
            self.insert_id = cursor.lastrowid
            return cursor.rowcount
        finally:
            cursor.close()

    def update(self, table: str, data: Dict[str, Any], where: Dict[str, Any]) -> int:
        assignments = ", ".join(f"{quote_identifier(k)} = %s" for k in data)
        conditions = " AND ".join(f"{quote_identifier(k)} = %s" for k in where)
        sql = f"UPDATE {quote_identifier(table)} SET {assignments} WHERE {conditions}"
        return self.query(sql, list(data.values()) + list(where.values()))

    def delete(self, table: str, where: Dict[str, Any]) -> int:
        conditions = " AND ".join(f"{quote_identifier(k)} = %s" for k in where)
        return self.query(f"DELETE FROM {quote_identifier(table)} WHERE {conditions}", list(where.values()))

    # ------------------------------------------------------------------
    # Schema introspection and DDL
    # ------------------------------------------------------------------
    def get_tables(self) -> List[str]:
        raise NotImplementedError

    def table_exists(self, table: str) -> bool:
        return table in self.get_tables()

    def get_table_collation(self, table: str) -> Optional[str]:
        raise NotImplementedError

    def rename_table(self, table: str, new_name: str) -> None:
        raise NotImplementedError

    def create_table_like(self, table: str, template: str) -> None:
        raise NotImplementedError

    def get_columns(self, table: str) -> List[str]:
        raise NotImplementedError

    def count_rows(self, table: str) -> int:
        return int(self.get_var(f"SELECT COUNT(*) FROM {quote_identifier(table)}") or 0)

    def copy_rows(self, target: str, source: str, columns: Sequence[str], offset: int, limit: int) -> int:
        raise NotImplementedError

    def close(self) -> None:
        self.connection.close()


class MySQLDatabase(Database):
    """MySQL/MariaDB store reached through :mod:`pymysql`."""

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MySQLDatabase":
        import pymysql

        connection = pymysql.connect(
            host=config.get("host", "localhost"),
            port=int(config.get("port", 3306)),
            user=config.get("user", ""),
            password=config.get("password", ""),
            database=config.get("name", ""),
            charset=config.get("charset", "utf8mb4"),
            autocommit=True,
        )
        return cls(connection)

    def get_tables(self) -> List[str]:
        return [str(t) for t in self.get_col("SHOW TABLES")]

    def get_table_collation(self, table: str) -> Optional[str]:
        row = self.get_row("SHOW TABLE STATUS WHERE Name = %s", [table])
        return row.get("Collation") if row else None

    def rename_table(self, table: str, new_name: str) -> None:
        self.query(f"RENAME TABLE {quote_identifier(table)} TO {quote_identifier(new_name)}")

    def create_table_like(self, table: str, template: str) -> None:
        self.query(f"CREATE TABLE {quote_identifier(table)} LIKE {quote_identifier(template)}")

    def get_columns(self, table: str) -> List[str]:
        return [row["Field"] for row in self.get_results(f"SHOW COLUMNS FROM {quote_identifier(table)}")]

    def copy_rows(self, target: str, source: str, columns: Sequence[str], offset: int, limit: int) -> int:
        cols = ", ".join(quote_identifier(c) for c in columns)
        sql = (
            f"INSERT INTO {quote_identifier(target)} ({cols}) "
            f"SELECT {cols} FROM {quote_identifier(source)} LIMIT %s, %s"
        )
        return self.query(sql, [offset, limit])
