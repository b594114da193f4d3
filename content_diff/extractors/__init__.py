"""
Readers of the live table set.

:mod:`~content_diff.extractors.diff_finder` compares live and local posts
by name, title, status and date to find the live posts missing locally.
:mod:`~content_diff.extractors.post_data` fetches one post with all of its
related rows into a :class:`~content_diff.models.PostData` bundle.
"""

from .diff_finder import DiffFinder, filter_modified_live_ids, filter_new_live_ids
from .post_data import PostDataFetcher

__all__ = ["DiffFinder", "filter_modified_live_ids", "filter_new_live_ids", "PostDataFetcher"]
