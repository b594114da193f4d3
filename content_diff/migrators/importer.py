"""
Imports a fetched :class:`~content_diff.models.PostData` bundle into the
local tables.

The post row is inserted first, on its own, so that every later step has a
valid local post ID to point at.  The remaining steps (post meta, author,
comments, term relationships) are each wrapped separately: a failing step
adds a message to the returned error list and the import carries on with
the next one.  An insert that does not affect exactly one row counts as a
failure.

Keys that change between the two databases are remapped on the way in:

* users are matched by ``user_login`` and inserted when missing;
* comment parents are rewritten with the map of inserted comment IDs;
* categories use the live-to-local term ID map built by
  :class:`~content_diff.migrators.categories.CategoryTreeMigrator`;
* tags are matched by exact name and created when missing.

``post_parent`` is left pointing at the live ID; it is fixed once all posts
are in, see :mod:`content_diff.migrators.parents`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from content_diff.database import Database, RowInsertError, quote_identifier
from content_diff.models import Post, PostData
from content_diff.utils.pre_flight_checks import validate_table_prefix
from content_diff.utils.terms import create_term, get_term_taxonomy_by_name

CATEGORY_TAXONOMY = "category"
TAG_TAXONOMY = "post_tag"


class PostImporter:
    def __init__(self, db: Database, local_prefix: str = "wp_") -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)

    def _table(self, name: str) -> str:
        return self.local_prefix + name

    def _insert(self, table: str, row: Dict[str, Any], description: str) -> int:
        if self.db.insert(self._table(table), row) != 1:
            raise RowInsertError(f"Error inserting {description}, row {row!r}")
        return int(self.db.insert_id or 0)

    def insert_post(self, post: Post) -> int:
        """Insert the bare post row and return its new ID.

        Raises:
            RowInsertError: If the row could not be inserted.
        """
        row = post.to_row(exclude=["ID"])
        if self.db.insert(self._table("posts"), row) != 1:
            raise RowInsertError(f"Error inserting post, ID {post.id}, post row {row!r}")
        return int(self.db.insert_id)

    def import_post(self, data: PostData, category_term_id_updates: Dict[int, int]) -> Tuple[int, List[str]]:
        """Insert the post and its related rows.

        :param data: Bundle fetched from the live tables.
        :param category_term_id_updates: Live to local category ``term_id`` map.
        :return: ``(new_post_id, errors)``.
        :raises RowInsertError: If the post row itself could not be inserted.
        """
        post_id_new = self.insert_post(data.post)
        return post_id_new, self.import_post_data(post_id_new, data, category_term_id_updates)

    def import_post_data(self, post_id_new: int, data: PostData, category_term_id_updates: Dict[int, int]) -> List[str]:
        errors: List[str] = []
        user_ids_updates: Dict[int, int] = {}

        for meta in data.postmeta:
            try:
                row = meta.to_row(exclude=["meta_id"])
                row["post_id"] = post_id_new
                self._insert("postmeta", row, f"postmeta for post ID {post_id_new}")
            except Exception as e:
                errors.append(f"Error inserting postmeta {meta.meta_key!r} for post ID {post_id_new}: {e}")

        try:
            author_id_new = self._get_or_insert_user(data, data.post.post_author, user_ids_updates, errors)
            if author_id_new != data.post.post_author:
                self.db.update(self._table("posts"), {"post_author": author_id_new}, {"ID": post_id_new})
        except Exception as e:
            errors.append(f"Error importing author {data.post.post_author} for post ID {post_id_new}: {e}")

        self._import_comments(post_id_new, data, user_ids_updates, errors)
        self._import_term_relationships(post_id_new, data, category_term_id_updates, errors)
        return errors

    def _get_or_insert_user(self, data: PostData, user_id_old: int, user_ids_updates: Dict[int, int], errors: List[str]) -> int:
        # 0 means "no user" for both post authors and comments.
        if not user_id_old:
            return 0
        if user_id_old in user_ids_updates:
            return user_ids_updates[user_id_old]
        user = data.get_user(user_id_old)
        if user is None:
            return 0

        existing = self.db.get_var(
            f"SELECT ID FROM {quote_identifier(self._table('users'))} WHERE user_login = %s", [user.user_login]
        )
        if existing is not None:
            user_id_new = int(existing)
        else:
            user_id_new = self._insert("users", user.to_row(exclude=["ID"]), f"user {user.user_login!r}")
            for meta in data.get_usermeta(user_id_old):
                try:
                    row = meta.to_row(exclude=["umeta_id"])
                    row["user_id"] = user_id_new
                    self._insert("usermeta", row, f"usermeta for user ID {user_id_new}")
                except Exception as e:
                    errors.append(f"Error inserting usermeta {meta.meta_key!r} for user ID {user_id_new}: {e}")
        user_ids_updates[user_id_old] = user_id_new
        return user_id_new

    def _import_comments(self, post_id_new: int, data: PostData, user_ids_updates: Dict[int, int], errors: List[str]) -> None:
        comment_ids_updates: Dict[int, int] = {}
        for comment in data.comments:
            try:
                user_id_new = self._get_or_insert_user(data, comment.user_id, user_ids_updates, errors)
                row = comment.to_row(exclude=["comment_ID"])
                row["comment_post_ID"] = post_id_new
                row["user_id"] = user_id_new
                comment_id_new = self._insert("comments", row, f"comment for post ID {post_id_new}")
            except Exception as e:
                errors.append(f"Error importing comment ID {comment.comment_id} for post ID {post_id_new}: {e}")
                continue
            comment_ids_updates[comment.comment_id] = comment_id_new

            for meta in data.get_commentmeta(comment.comment_id):
                try:
                    row = meta.to_row(exclude=["meta_id"])
                    row["comment_id"] = comment_id_new
                    self._insert("commentmeta", row, f"commentmeta for comment ID {comment_id_new}")
                except Exception as e:
                    errors.append(f"Error inserting commentmeta {meta.meta_key!r} for comment ID {comment_id_new}: {e}")

        for comment in data.comments:
            comment_id_new = comment_ids_updates.get(comment.comment_id)
            parent_id_old = comment.comment_parent
            parent_id_new = comment_ids_updates.get(parent_id_old)
            if comment_id_new is None or parent_id_old <= 0 or parent_id_new is None or parent_id_old == parent_id_new:
                continue
            try:
                self.db.update(self._table("comments"), {"comment_parent": parent_id_new}, {"comment_ID": comment_id_new})
            except Exception as e:
                errors.append(f"Error updating parent of comment ID {comment_id_new} to {parent_id_new}: {e}")

    def _import_term_relationships(
        self, post_id_new: int, data: PostData, category_term_id_updates: Dict[int, int], errors: List[str]
    ) -> None:
        for relationship in data.term_relationships:
            term_taxonomy = data.get_term_taxonomy(relationship.term_taxonomy_id)
            if term_taxonomy is None:
                continue
            term = data.get_term(term_taxonomy.term_id)
            if term is None:
                continue
            try:
                if term_taxonomy.taxonomy == CATEGORY_TAXONOMY:
                    term_taxonomy_id_new = self._local_category_term_taxonomy_id(term.term_id, category_term_id_updates)
                elif term_taxonomy.taxonomy == TAG_TAXONOMY:
                    term_taxonomy_id_new = self._get_or_create_tag(data, term.term_id, term.name, term_taxonomy.description or "")
                else:
                    continue
                row = {
                    "object_id": post_id_new,
                    "term_taxonomy_id": term_taxonomy_id_new,
                    "term_order": relationship.term_order,
                }
                if self.db.insert(self._table("term_relationships"), row) != 1:
                    raise RowInsertError(f"Error inserting term relationship {row!r}")
            except Exception as e:
                errors.append(
                    f"Error importing {term_taxonomy.taxonomy} {term.name!r} (term_id {term.term_id}) "
                    f"for post ID {post_id_new}: {e}"
                )

    def _local_category_term_taxonomy_id(self, term_id_old: int, category_term_id_updates: Dict[int, int]) -> int:
        term_id_new = category_term_id_updates.get(term_id_old)
        if term_id_new is None:
            raise LookupError(f"category term_id {term_id_old} was not recreated locally")
        term_taxonomy_id = self.db.get_var(
            f"SELECT term_taxonomy_id FROM {quote_identifier(self._table('term_taxonomy'))} "
            "WHERE term_id = %s AND taxonomy = %s",
            [term_id_new, CATEGORY_TAXONOMY],
        )
        if term_taxonomy_id is None:
            raise LookupError(f"local category term_id {term_id_new} has no term_taxonomy row")
        return int(term_taxonomy_id)

    def _get_or_create_tag(self, data: PostData, term_id_old: int, name: str, description: str) -> int:
        existing = get_term_taxonomy_by_name(self.db, self.local_prefix, name, TAG_TAXONOMY)
        if existing is not None:
            return int(existing["term_taxonomy_id"])
        term_id_new, term_taxonomy_id_new = create_term(self.db, self.local_prefix, name, TAG_TAXONOMY, description)
        for meta in data.get_termmeta(term_id_old):
            row = meta.to_row(exclude=["meta_id"])
            row["term_id"] = term_id_new
            self._insert("termmeta", row, f"termmeta for term ID {term_id_new}")
        return term_taxonomy_id_new

    def delete_posts(self, post_ids: Sequence[int]) -> List[int]:
        """Permanently delete local posts with their meta, comments and term relationships.

        Returns the IDs that were deleted.
        """
        deleted: List[int] = []
        comments = quote_identifier(self._table("comments"))
        for post_id in post_ids:
            comment_ids = self.db.get_col(f"SELECT comment_ID FROM {comments} WHERE comment_post_ID = %s", [post_id])
            for comment_id in comment_ids:
                self.db.delete(self._table("commentmeta"), {"comment_id": comment_id})
            self.db.delete(self._table("comments"), {"comment_post_ID": post_id})
            self.db.delete(self._table("postmeta"), {"post_id": post_id})
            self.db.delete(self._table("term_relationships"), {"object_id": post_id})
            if self.db.delete(self._table("posts"), {"ID": post_id}) > 0:
                deleted.append(int(post_id))
        return deleted
