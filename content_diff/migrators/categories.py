"""
Category tree validation and recreation.

Before posts are imported, every live category must exist locally so that
category relationships can be pointed at local term IDs.  The tree is
recreated from the root down: for each live category the chain of parents
is walked up to the root, then each level is found or created locally by
name, description and local parent.  Live term IDs already resolved are
memoized, so siblings sharing ancestors do not repeat the walk.

A category whose parent term no longer exists cannot be placed in the
tree; :meth:`CategoryTreeMigrator.get_categories_with_nonexistent_parents`
finds these and :meth:`CategoryTreeMigrator.reset_categories_parents`
moves them to the root.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from content_diff.database import Database, placeholders, quote_identifier
from content_diff.utils.pre_flight_checks import validate_table_prefix
from content_diff.utils.terms import create_term

CATEGORY_TAXONOMY = "category"


class CategoryTreeMigrator:
    def __init__(self, db: Database, local_prefix: str = "wp_") -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)
        # Local term IDs of the categories created by this instance, in creation order.
        self.created_term_ids: List[int] = []

    def _categories_sql(self, table_prefix: str) -> str:
        return (
            "SELECT t.term_id, t.name, t.slug, tt.term_taxonomy_id, tt.description, tt.parent "
            f"FROM {quote_identifier(table_prefix + 'terms')} t "
            f"JOIN {quote_identifier(table_prefix + 'term_taxonomy')} tt ON tt.term_id = t.term_id "
            "WHERE tt.taxonomy = %s"
        )

    def get_categories_with_nonexistent_parents(self, table_prefix: str) -> List[Dict[str, Any]]:
        """Categories whose ``parent`` points at a term that does not exist."""
        validate_table_prefix(table_prefix)
        sql = (
            "SELECT t.term_id, t.name, tt.term_taxonomy_id, tt.parent "
            f"FROM {quote_identifier(table_prefix + 'terms')} t "
            f"JOIN {quote_identifier(table_prefix + 'term_taxonomy')} tt ON tt.term_id = t.term_id "
            f"LEFT JOIN {quote_identifier(table_prefix + 'terms')} p ON p.term_id = tt.parent "
            "WHERE tt.taxonomy = %s AND tt.parent <> 0 AND p.term_id IS NULL "
            "ORDER BY t.term_id"
        )
        return self.db.get_results(sql, [CATEGORY_TAXONOMY])

    def reset_categories_parents(self, table_prefix: str, term_taxonomy_ids: Sequence[int]) -> int:
        """Set ``parent`` to 0 for the given term taxonomy IDs."""
        validate_table_prefix(table_prefix)
        if not term_taxonomy_ids:
            return 0
        sql = (
            f"UPDATE {quote_identifier(table_prefix + 'term_taxonomy')} SET parent = 0 "
            f"WHERE term_taxonomy_id IN ({placeholders(len(term_taxonomy_ids))})"
        )
        return self.db.query(sql, list(term_taxonomy_ids))

    def get_categories(self, table_prefix: str) -> List[Dict[str, Any]]:
        sql = self._categories_sql(validate_table_prefix(table_prefix)) + " ORDER BY tt.parent, t.term_id"
        return self.db.get_results(sql, [CATEGORY_TAXONOMY])

    def get_category(self, table_prefix: str, term_id: int) -> Optional[Dict[str, Any]]:
        sql = self._categories_sql(table_prefix) + " AND t.term_id = %s"
        return self.db.get_row(sql, [CATEGORY_TAXONOMY, term_id])

    def get_category_tree(self, table_prefix: str, term_id: int, stop_at: Optional[Dict[int, int]] = None) -> List[Dict[str, Any]]:
        """Return the chain of categories from the root down to ``term_id``.

        The walk up stops early at a category whose ID is a key of ``stop_at``;
        that category is still included as the first element.
        """
        chain: List[Dict[str, Any]] = []
        seen = set()
        current: Optional[int] = term_id
        while current:
            if current in seen:
                raise ValueError(f"Category parent loop detected at term_id {current} in {table_prefix}terms")
            seen.add(current)
            category = self.get_category(table_prefix, current)
            if category is None:
                break
            chain.append(category)
            if stop_at is not None and current in stop_at:
                break
            current = int(category["parent"] or 0)
        chain.reverse()
        return chain

    def get_or_create_category(self, name: str, description: str, parent: int) -> int:
        """Local term ID of the category matching name, description and parent."""
        sql = self._categories_sql(self.local_prefix) + " AND t.name = %s AND tt.description = %s AND tt.parent = %s"
        existing = self.db.get_row(sql, [CATEGORY_TAXONOMY, name, description or "", parent])
        if existing is not None:
            return int(existing["term_id"])
        term_id, _ = create_term(self.db, self.local_prefix, name, CATEGORY_TAXONOMY, description or "", parent)
        self.created_term_ids.append(term_id)
        return term_id

    def recreate_categories(self, live_prefix: str) -> Dict[int, int]:
        """Recreate every live category locally.

        :param live_prefix: Table prefix of the live tables.
        :return: Map of live category ``term_id`` to local ``term_id``.
        """
        term_id_updates: Dict[int, int] = {}
        for category in self.get_categories(live_prefix):
            live_term_id = int(category["term_id"])
            if live_term_id in term_id_updates:
                continue
            parent_local = 0
            for level in self.get_category_tree(live_prefix, live_term_id, stop_at=term_id_updates):
                level_id = int(level["term_id"])
                if level_id in term_id_updates:
                    parent_local = term_id_updates[level_id]
                    continue
                parent_local = self.get_or_create_category(level["name"], level["description"] or "", parent_local)
                term_id_updates[level_id] = parent_local
        return term_id_updates
