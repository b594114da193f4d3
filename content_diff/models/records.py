from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

ATTACHMENT_POST_TYPE = "attachment"


class WPRow(BaseModel):
    """Base for a row of a WordPress table.

    Only the columns the migration reads are declared; every other column
    is kept as an extra field so that a fetched row can be inserted back in
    full.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_row(self, *, exclude: Iterable[str] = ()) -> Dict[str, Any]:
        """Return the row keyed by column name without the ``exclude`` columns."""
        row = self.model_dump(by_alias=True)
        for column in exclude:
            row.pop(column, None)
        return row


class Post(WPRow):
    id: int = Field(alias="ID")
    post_author: int = 0
    post_date: Any = None
    post_modified: Any = None
    post_content: Optional[str] = ""
    post_title: Optional[str] = ""
    post_excerpt: Optional[str] = ""
    post_status: Optional[str] = ""
    post_name: Optional[str] = ""
    post_parent: int = 0
    post_type: str = "post"
    comment_count: int = 0

    @property
    def is_attachment(self) -> bool:
        return self.post_type == ATTACHMENT_POST_TYPE


class PostMeta(WPRow):
    meta_id: Optional[int] = None
    post_id: int
    meta_key: Optional[str] = None
    meta_value: Any = None


class User(WPRow):
    id: int = Field(alias="ID")
    user_login: str


class UserMeta(WPRow):
    umeta_id: Optional[int] = None
    user_id: int
    meta_key: Optional[str] = None
    meta_value: Any = None


class Comment(WPRow):
    comment_id: int = Field(alias="comment_ID")
    comment_post_id: int = Field(alias="comment_post_ID")
    comment_parent: int = 0
    user_id: int = 0


class CommentMeta(WPRow):
    meta_id: Optional[int] = None
    comment_id: int
    meta_key: Optional[str] = None
    meta_value: Any = None


class Term(WPRow):
    term_id: int
    name: str
    slug: str = ""


class TermMeta(WPRow):
    meta_id: Optional[int] = None
    term_id: int
    meta_key: Optional[str] = None
    meta_value: Any = None


class TermTaxonomy(WPRow):
    term_taxonomy_id: int
    term_id: int
    taxonomy: str
    description: Optional[str] = ""
    parent: int = 0


class TermRelationship(WPRow):
    object_id: int
    term_taxonomy_id: int
    term_order: int = 0


class PostData(BaseModel):
    """Everything related to one post, fetched from a single table set.

    Built for one post, handed to the importer and then discarded.
    """

    post: Post
    postmeta: List[PostMeta] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)
    usermeta: List[UserMeta] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    commentmeta: List[CommentMeta] = Field(default_factory=list)
    term_relationships: List[TermRelationship] = Field(default_factory=list)
    term_taxonomy: List[TermTaxonomy] = Field(default_factory=list)
    terms: List[Term] = Field(default_factory=list)
    termmeta: List[TermMeta] = Field(default_factory=list)

    def get_user(self, user_id: int) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)

    def get_usermeta(self, user_id: int) -> List[UserMeta]:
        return [m for m in self.usermeta if m.user_id == user_id]

    def get_commentmeta(self, comment_id: int) -> List[CommentMeta]:
        return [m for m in self.commentmeta if m.comment_id == comment_id]

    def get_term_taxonomy(self, term_taxonomy_id: int) -> Optional[TermTaxonomy]:
        return next((t for t in self.term_taxonomy if t.term_taxonomy_id == term_taxonomy_id), None)

    def get_term(self, term_id: int) -> Optional[Term]:
        return next((t for t in self.terms if t.term_id == term_id), None)

    def get_termmeta(self, term_id: int) -> List[TermMeta]:
        return [m for m in self.termmeta if m.term_id == term_id]


@dataclass
class ImportedPost:
    post_type: str
    id_old: int
    id_new: int

    def to_dict(self) -> Dict[str, Any]:
        return {"post_type": self.post_type, "id_old": self.id_old, "id_new": self.id_new}


class DuplicateImportError(ValueError):
    """Raised when an old ID would be mapped a second time."""


@dataclass
class ImportMap:
    """Old ID to new ID mapping, split into attachments and other content."""

    content: Dict[int, int] = field(default_factory=dict)
    attachment: Dict[int, int] = field(default_factory=dict)

    def add(self, post_type: str, id_old: int, id_new: int) -> None:
        if id_old in self:
            raise DuplicateImportError(f"Live ID {id_old} has already been imported")
        target = self.attachment if post_type == ATTACHMENT_POST_TYPE else self.content
        target[id_old] = id_new

    def get(self, id_old: int) -> Optional[int]:
        if id_old in self.content:
            return self.content[id_old]
        return self.attachment.get(id_old)

    def __contains__(self, id_old: object) -> bool:
        return id_old in self.content or id_old in self.attachment

    def __len__(self) -> int:
        return len(self.content) + len(self.attachment)
