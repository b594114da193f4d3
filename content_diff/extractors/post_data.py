"""
Fetches a post together with every related row from one table set.

The traversal order is fixed: post, post meta, author and author meta,
comments with their meta and authors (only when ``comment_count`` is
positive), term relationships, term taxonomies, terms and term meta.
Live databases often carry dangling references, so a relationship whose
term taxonomy row is gone, or a taxonomy whose term is gone, is left out
of the bundle without an error.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from content_diff.database import Database, quote_identifier
from content_diff.models import (
    Comment,
    CommentMeta,
    Post,
    PostData,
    PostMeta,
    Term,
    TermMeta,
    TermRelationship,
    TermTaxonomy,
    User,
    UserMeta,
)
from content_diff.utils.pre_flight_checks import validate_table_prefix


class PostDataFetcher:
    def __init__(self, db: Database) -> None:
        self.db = db

    def _select(self, table_prefix: str, table: str, column: str, value: Any) -> List[Dict[str, Any]]:
        sql = f"SELECT * FROM {quote_identifier(table_prefix + table)} WHERE {quote_identifier(column)} = %s"
        return self.db.get_results(sql, [value])

    def _select_one(self, table_prefix: str, table: str, column: str, value: Any) -> Optional[Dict[str, Any]]:
        rows = self._select(table_prefix, table, column, value)
        return rows[0] if rows else None

    def get_post_data(self, post_id: int, table_prefix: str) -> PostData:
        """Return the :class:`PostData` bundle for ``post_id``.

        :raises LookupError: If the post row does not exist.
        """
        validate_table_prefix(table_prefix)
        post_row = self._select_one(table_prefix, "posts", "ID", post_id)
        if post_row is None:
            raise LookupError(f"Post ID {post_id} not found in {table_prefix}posts")
        data = PostData(post=Post.model_validate(post_row))

        data.postmeta = [PostMeta.model_validate(r) for r in self._select(table_prefix, "postmeta", "post_id", post_id)]

        author_id = data.post.post_author
        if author_id:
            self._add_user(data, table_prefix, author_id)

        if data.post.comment_count > 0:
            for row in self._select(table_prefix, "comments", "comment_post_ID", post_id):
                comment = Comment.model_validate(row)
                data.comments.append(comment)
                data.commentmeta.extend(
                    CommentMeta.model_validate(r)
                    for r in self._select(table_prefix, "commentmeta", "comment_id", comment.comment_id)
                )
                if comment.user_id > 0 and data.get_user(comment.user_id) is None:
                    self._add_user(data, table_prefix, comment.user_id)

        for row in self._select(table_prefix, "term_relationships", "object_id", post_id):
            relationship = TermRelationship.model_validate(row)
            taxonomy_row = self._select_one(
                table_prefix, "term_taxonomy", "term_taxonomy_id", relationship.term_taxonomy_id
            )
            if taxonomy_row is None:
                continue
            data.term_relationships.append(relationship)
            term_taxonomy = TermTaxonomy.model_validate(taxonomy_row)
            if data.get_term_taxonomy(term_taxonomy.term_taxonomy_id) is None:
                data.term_taxonomy.append(term_taxonomy)

        for term_taxonomy in data.term_taxonomy:
            if data.get_term(term_taxonomy.term_id) is not None:
                continue
            term_row = self._select_one(table_prefix, "terms", "term_id", term_taxonomy.term_id)
            if term_row is None:
                continue
            data.terms.append(Term.model_validate(term_row))
            data.termmeta.extend(
                TermMeta.model_validate(r) for r in self._select(table_prefix, "termmeta", "term_id", term_taxonomy.term_id)
            )

        return data

    def _add_user(self, data: PostData, table_prefix: str, user_id: int) -> None:
        user_row = self._select_one(table_prefix, "users", "ID", user_id)
        if user_row is None:
            return
        data.users.append(User.model_validate(user_row))
        data.usermeta.extend(UserMeta.model_validate(r) for r in self._select(table_prefix, "usermeta", "user_id", user_id))
