from __future__ import annotations

import unicodedata
from html import unescape
from typing import Any, Dict, Optional, Tuple

from content_diff.database import Database, RowInsertError, quote_identifier


def _strip_accents(text: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn"
    )


def slugify(value: str) -> str:
    """Build a term slug the way WordPress sanitizes titles.

    Entities are unescaped, accents stripped, and every run of
    non-alphanumeric characters becomes a single dash.
    """
    text = _strip_accents(unescape(value or "")).strip().lower()
    out = []
    prev_dash = False
    for ch in text:
        if ch.isalnum():
            out.append(ch)
            prev_dash = False
        else:
            if not prev_dash:
                out.append("-")
            prev_dash = True
    slug = "".join(out).strip("-")
    return slug[:200]


def unique_term_slug(db: Database, table_prefix: str, name: str) -> str:
    """Return a slug for ``name`` not yet used in the terms table.

    Taken slugs get ``-2``, ``-3`` ... appended.
    """
    base = slugify(name) or "term"
    table = quote_identifier(table_prefix + "terms")
    slug = base
    suffix = 2
    while db.get_var(f"SELECT term_id FROM {table} WHERE slug = %s", [slug]) is not None:
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def get_term_taxonomy_by_name(db: Database, table_prefix: str, name: str, taxonomy: str) -> Optional[Dict[str, Any]]:
    """Look up a term and its taxonomy row by exact name."""
    sql = (
        "SELECT t.term_id, t.name, t.slug, tt.term_taxonomy_id, tt.taxonomy, tt.description, tt.parent "
        f"FROM {quote_identifier(table_prefix + 'terms')} t "
        f"JOIN {quote_identifier(table_prefix + 'term_taxonomy')} tt ON tt.term_id = t.term_id "
        "WHERE t.name = %s AND tt.taxonomy = %s "
        "ORDER BY t.term_id"
    )
    return db.get_row(sql, [name, taxonomy])


def create_term(
    db: Database,
    table_prefix: str,
    name: str,
    taxonomy: str,
    description: str = "",
    parent: int = 0,
) -> Tuple[int, int]:
    """Insert a term and its taxonomy row.

    Returns ``(term_id, term_taxonomy_id)``.

    Raises:
        RowInsertError: If either insert does not affect exactly one row.
    """
    slug = unique_term_slug(db, table_prefix, name)
    if db.insert(table_prefix + "terms", {"name": name, "slug": slug, "term_group": 0}) != 1:
        raise RowInsertError(f"Error inserting term {name!r} ({taxonomy})")
    term_id = int(db.insert_id)
    taxonomy_row = {
        "term_id": term_id,
        "taxonomy": taxonomy,
        "description": description or "",
        "parent": parent,
        "count": 0,
    }
    if db.insert(table_prefix + "term_taxonomy", taxonomy_row) != 1:
        raise RowInsertError(f"Error inserting term_taxonomy for term {name!r} ({taxonomy}), term_id {term_id}")
    return term_id, int(db.insert_id)
