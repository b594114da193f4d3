"""
Writers of the local table set.

This subpackage imports fetched posts, recreates the category tree,
fixes parents, featured images and attachment IDs in content after the
import, and keeps the live tables collated like the local ones.
"""

from .categories import CategoryTreeMigrator
from .collations import COLLATION_MODES, CollationReconciler
from .content_updater import AttachmentUrlResolver, ContentUpdater
from .importer import PostImporter
from .parents import ParentIdsFixer

__all__ = [
    "CategoryTreeMigrator",
    "COLLATION_MODES",
    "CollationReconciler",
    "AttachmentUrlResolver",
    "ContentUpdater",
    "PostImporter",
    "ParentIdsFixer",
]
