"""
Typed records for rows of the WordPress tables touched by the migration.

Rows are pydantic models that keep unknown columns as extra fields, so a
row read from the live tables can be written back to the local tables
unchanged apart from the keys being remapped.
"""

from .records import (
    ATTACHMENT_POST_TYPE,
    Comment,
    CommentMeta,
    DuplicateImportError,
    ImportedPost,
    ImportMap,
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

__all__ = [
    "ATTACHMENT_POST_TYPE",
    "Comment",
    "CommentMeta",
    "DuplicateImportError",
    "ImportedPost",
    "ImportMap",
    "Post",
    "PostData",
    "PostMeta",
    "Term",
    "TermMeta",
    "TermRelationship",
    "TermTaxonomy",
    "User",
    "UserMeta",
]
