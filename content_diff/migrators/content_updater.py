"""
Post-import updates of attachment references in local posts.

:class:`ContentUpdater` rewrites attachment IDs embedded in the content
and excerpt of posts (see :mod:`content_diff.parsers.block_ids`) and
points featured images (``_thumbnail_id`` post meta) at the imported
attachments.  :class:`AttachmentUrlResolver` finds the local attachment
behind an image URL; it is used when fixing image IDs of posts whose
``<img>`` elements carry an ID that does not match their file.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse

from content_diff.database import Database, placeholders, quote_identifier
from content_diff.parsers.block_ids import update_all_ids
from content_diff.parsers.images import find_images
from content_diff.utils.ledger import write_jsonl
from content_diff.utils.pre_flight_checks import validate_table_prefix

THUMBNAIL_META_KEY = "_thumbnail_id"
ATTACHED_FILE_META_KEY = "_wp_attached_file"
UPLOADS_PATH = "/wp-content/uploads/"
CHUNK_SIZE = 500

_SIZE_SUFFIX_RE = re.compile(r"-\d+x\d+(?=\.[A-Za-z0-9]+$)")
_SCALED_SUFFIX_RE = re.compile(r"-scaled(?=\.[A-Za-z0-9]+$)")


def _chunks(values: Sequence[Any], size: int = CHUNK_SIZE) -> Iterable[Sequence[Any]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


class AttachmentUrlResolver:
    """Looks up local attachment IDs by image URL.

    URLs are considered local when they are relative, or when their hostname
    is the site's own (``siteurl`` option) or one of ``hostname_aliases``,
    e.g. a CDN or S3 bucket serving the uploads.
    """

    def __init__(self, db: Database, local_prefix: str = "wp_", hostname_aliases: Iterable[str] = ()) -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)
        self.hostname_aliases = {h.strip().lower() for h in hostname_aliases if h and h.strip()}
        self._local_hostname: Optional[str] = None

    @property
    def local_hostname(self) -> str:
        if self._local_hostname is None:
            siteurl = self.db.get_var(
                f"SELECT option_value FROM {quote_identifier(self.local_prefix + 'options')} WHERE option_name = %s",
                ["siteurl"],
            )
            self._local_hostname = (urlparse(str(siteurl)).hostname or "") if siteurl else ""
        return self._local_hostname

    def is_local_url(self, url: str) -> bool:
        if url.startswith("//"):
            url = "http:" + url
        hostname = (urlparse(url).hostname or "").lower()
        if not hostname:
            return True
        return hostname == self.local_hostname.lower() or hostname in self.hostname_aliases

    @staticmethod
    def get_attached_file_candidates(url: str) -> List[str]:
        """Relative upload paths that ``url`` may have been generated from."""
        path = unquote(urlparse(url).path)
        if UPLOADS_PATH not in path:
            return []
        relative = path.split(UPLOADS_PATH, 1)[1]
        candidates = [relative]
        original = _SIZE_SUFFIX_RE.sub("", relative)
        if original != relative:
            candidates.append(original)
        if not _SCALED_SUFFIX_RE.search(original):
            stem, dot, ext = original.rpartition(".")
            if dot:
                candidates.append(f"{stem}-scaled.{ext}")
        return candidates

    def attachment_url_to_post_id(self, url: str) -> Optional[int]:
        if not url or not self.is_local_url(url):
            return None
        sql = (
            "SELECT pm.post_id "
            f"FROM {quote_identifier(self.local_prefix + 'postmeta')} pm "
            f"JOIN {quote_identifier(self.local_prefix + 'posts')} p ON p.ID = pm.post_id "
            "WHERE pm.meta_key = %s AND pm.meta_value = %s AND p.post_type = 'attachment' "
            "ORDER BY pm.post_id"
        )
        for candidate in self.get_attached_file_candidates(url):
            post_id = self.db.get_var(sql, [ATTACHED_FILE_META_KEY, candidate])
            if post_id is not None:
                return int(post_id)
        return None


class ContentUpdater:
    def __init__(self, db: Database, local_prefix: str = "wp_") -> None:
        self.db = db
        self.local_prefix = validate_table_prefix(local_prefix)

    def _posts_table(self) -> str:
        return quote_identifier(self.local_prefix + "posts")

    def get_posts_contents(self, post_ids: Sequence[int]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for chunk in _chunks(list(post_ids)):
            sql = (
                f"SELECT ID, post_content, post_excerpt FROM {self._posts_table()} "
                f"WHERE ID IN ({placeholders(len(chunk))}) ORDER BY ID"
            )
            rows.extend(self.db.get_results(sql, list(chunk)))
        return rows

    def collect_image_ids_updates(self, html: str, resolver: AttachmentUrlResolver, ids_map: Dict[int, int]) -> None:
        """Add ``<img>`` IDs which do not match their file's attachment to ``ids_map``."""
        for image in find_images(html):
            ids = {i for i in (image.class_id, image.data_id) if i is not None}
            if not ids or all(i in ids_map for i in ids):
                continue
            attachment_id = resolver.attachment_url_to_post_id(image.src)
            if attachment_id is None:
                continue
            for image_id in ids:
                if image_id != attachment_id and image_id not in ids_map:
                    ids_map[image_id] = attachment_id

    def update_blocks_ids(
        self,
        post_ids: Sequence[int],
        attachment_ids_map: Dict[int, int],
        local_hostname_aliases: Optional[Iterable[str]] = None,
        log_path: Optional[str] = None,
    ) -> List[int]:
        """Rewrite attachment IDs in the content and excerpt of ``post_ids``.

        :param post_ids: Local IDs of the posts to check.
        :param attachment_ids_map: Old to new attachment IDs.  When hostname
            aliases are given the map is extended in place with IDs resolved
            from image URLs.
        :param local_hostname_aliases: When not ``None``, image URLs of each
            post are resolved to local attachments first.
        :param log_path: When given, one JSON line is appended per checked
            post, with before and after values of the changed fields only.
        :return: IDs of the posts that were updated.
        """
        resolver = None
        if local_hostname_aliases is not None:
            resolver = AttachmentUrlResolver(self.db, self.local_prefix, local_hostname_aliases)

        updated: List[int] = []
        for row in self.get_posts_contents(post_ids):
            post_id = int(row["ID"])
            content_before = row["post_content"] or ""
            excerpt_before = row["post_excerpt"] or ""
            if resolver is not None:
                self.collect_image_ids_updates(content_before, resolver, attachment_ids_map)

            content_after = update_all_ids(content_before, attachment_ids_map)
            excerpt_after = update_all_ids(excerpt_before, attachment_ids_map)

            if content_after != content_before or excerpt_after != excerpt_before:
                self.db.update(
                    self.local_prefix + "posts",
                    {"post_content": content_after, "post_excerpt": excerpt_after},
                    {"ID": post_id},
                )
                updated.append(post_id)

            if log_path is not None:
                entry: Dict[str, Any] = {"id_new": post_id}
                if content_after != content_before:
                    entry["post_content_before"] = content_before
                    entry["post_content_after"] = content_after
                if excerpt_after != excerpt_before:
                    entry["post_excerpt_before"] = excerpt_before
                    entry["post_excerpt_after"] = excerpt_after
                write_jsonl(log_path, entry)
        return updated

    def update_featured_images(
        self,
        post_ids: Sequence[int],
        attachment_ids_map: Dict[int, int],
        on_update: Optional[Callable[[Dict[str, int]], None]] = None,
    ) -> Tuple[List[Dict[str, int]], List[Dict[str, Any]]]:
        """Point ``_thumbnail_id`` of ``post_ids`` at the imported attachments.

        Returns ``(updates, warnings)``.  A warning is produced for a featured
        image which was not imported and does not exist locally either.
        """
        postmeta = quote_identifier(self.local_prefix + "postmeta")
        updates: List[Dict[str, int]] = []
        warnings: List[Dict[str, Any]] = []
        for chunk in _chunks(list(post_ids)):
            sql = (
                f"SELECT meta_id, post_id, meta_value FROM {postmeta} "
                f"WHERE meta_key = %s AND post_id IN ({placeholders(len(chunk))}) ORDER BY post_id"
            )
            for meta in self.db.get_results(sql, [THUMBNAIL_META_KEY] + list(chunk)):
                value = str(meta["meta_value"] or "").strip()
                if not value.isdigit():
                    continue
                id_old = int(value)
                id_new = attachment_ids_map.get(id_old)
                if id_new is None:
                    exists = self.db.get_var(
                        f"SELECT ID FROM {self._posts_table()} WHERE ID = %s AND post_type = 'attachment'", [id_old]
                    )
                    if exists is None:
                        warnings.append(
                            {
                                "post_id": int(meta["post_id"]),
                                "id_old": id_old,
                                "warning": f"Featured image ID {id_old} was not imported and does not exist locally",
                            }
                        )
                    continue
                if id_new == id_old:
                    continue
                self.db.update(self.local_prefix + "postmeta", {"meta_value": str(id_new)}, {"meta_id": meta["meta_id"]})
                entry = {"post_id": int(meta["post_id"]), "id_old": id_old, "id_new": id_new}
                updates.append(entry)
                if on_update is not None:
                    on_update(entry)
        return updates, warnings
