"""
Second pass over imported posts which fixes ``post_parent``.

Imported posts keep the live parent ID until every post is in.  The local
parent is then resolved, in this order, from:

1. the import map (parent imported in this or a previous run);
2. the ``content_diff_live_id`` post meta saved on imported posts;
3. a local post matching the live parent's name, title, status, date and
   type (parent which already existed locally).

An unresolved parent is set to 0 and reported as a warning.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from content_diff.database import Database, quote_identifier
from content_diff.models import ImportMap
from content_diff.utils.pre_flight_checks import validate_table_prefix

SAVED_META_LIVE_POST_ID = "content_diff_live_id"

_MATCH_COLUMNS = ("post_name", "post_title", "post_status", "post_date", "post_type")


class ParentIdsFixer:
    def __init__(self, db: Database, local_prefix: str = "wp_", live_prefix: str = "live_wp_") -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)
        self.live_prefix = validate_table_prefix(live_prefix)

    def get_current_post_id_by_custom_meta(self, id_live: int, meta_key: str = SAVED_META_LIVE_POST_ID) -> Optional[int]:
        value = self.db.get_var(
            f"SELECT post_id FROM {quote_identifier(self.local_prefix + 'postmeta')} "
            "WHERE meta_key = %s AND meta_value = %s ORDER BY post_id",
            [meta_key, str(id_live)],
        )
        return int(value) if value is not None else None

    def get_current_post_id_by_comparing_with_live_db(self, id_live: int) -> Optional[int]:
        columns = ", ".join(_MATCH_COLUMNS)
        live_row = self.db.get_row(
            f"SELECT {columns} FROM {quote_identifier(self.live_prefix + 'posts')} WHERE ID = %s", [id_live]
        )
        if live_row is None:
            return None
        conditions = " AND ".join(f"{c} = %s" for c in _MATCH_COLUMNS)
        value = self.db.get_var(
            f"SELECT ID FROM {quote_identifier(self.local_prefix + 'posts')} WHERE {conditions} ORDER BY ID",
            [live_row[c] for c in _MATCH_COLUMNS],
        )
        return int(value) if value is not None else None

    def resolve_parent_id(self, parent_id_old: int, import_map: ImportMap) -> Optional[int]:
        parent_id_new = import_map.get(parent_id_old)
        if parent_id_new is None:
            parent_id_new = self.get_current_post_id_by_custom_meta(parent_id_old)
        if parent_id_new is None:
            parent_id_new = self.get_current_post_id_by_comparing_with_live_db(parent_id_old)
        return parent_id_new

    def update_post_parent_ids(
        self,
        ids_old: Iterable[int],
        import_map: ImportMap,
        skip_ids_new: Iterable[int] = (),
        on_update: Optional[Callable[[Dict[str, int]], None]] = None,
        on_warning: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> List[Dict[str, int]]:
        """Fix ``post_parent`` of the posts imported from ``ids_old``.

        :param ids_old: Live IDs of the imported posts.
        :param import_map: Map of all imported posts.
        :param skip_ids_new: Local IDs already handled by a previous run.
        :param on_update: Called with each ``{id_old, id_new, parent_id_old,
            parent_id_new}`` update right after it is written.
        :param on_warning: Called when a parent could not be resolved.
        :param on_progress: Called with the 1 based position in ``ids_old``.
        :return: The resolved parents, including those that were already right.
        """
        skip = set(skip_ids_new)
        posts_table = quote_identifier(self.local_prefix + "posts")
        updates: List[Dict[str, int]] = []
        for position, id_old in enumerate(ids_old, start=1):
            if on_progress is not None:
                on_progress(position)
            id_new = import_map.get(id_old)
            if id_new is None or id_new in skip:
                continue
            parent_id_old = self.db.get_var(f"SELECT post_parent FROM {posts_table} WHERE ID = %s", [id_new])
            parent_id_old = int(parent_id_old or 0)
            if parent_id_old == 0:
                continue

            parent_id_new = self.resolve_parent_id(parent_id_old, import_map)
            if parent_id_new is None:
                parent_id_new = 0
                if on_warning is not None:
                    on_warning(
                        {
                            "id_old": id_old,
                            "id_new": id_new,
                            "parent_id_old": parent_id_old,
                            "warning": f"Parent ID {parent_id_old} of post {id_new} could not be resolved, set to 0",
                        }
                    )
            if parent_id_new != parent_id_old:
                self.db.update(self.local_prefix + "posts", {"post_parent": parent_id_new}, {"ID": id_new})
            # Logged even when unchanged, so a resumed run does not resolve it again.
            update = {
                "id_old": id_old,
                "id_new": id_new,
                "parent_id_old": parent_id_old,
                "parent_id_new": parent_id_new,
            }
            updates.append(update)
            if on_update is not None:
                on_update(update)
        return updates
