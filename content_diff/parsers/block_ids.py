"""
Rewriting of attachment IDs embedded in post content.

Block editor content refers to attachments in four ways:

* a single ``"id":123`` attribute in a block comment header, e.g.
  ``<!-- wp:image {"id":123,"sizeSlug":"large"} -->``;
* a list ``"ids":[1,2,3]`` in a block comment header, e.g. galleries;
* the ``wp-image-123`` class of an ``<img>`` element;
* the ``data-id="123"`` attribute of an ``<img>`` element.

Each rule is a pure function ``(text, ids_map) -> text``.  Only the ID
inside the matched header or element is replaced, so the same number
appearing elsewhere in the content is left alone.  IDs missing from
``ids_map`` are kept as they are.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Mapping

IdsMap = Mapping[int, int]

_BLOCK_SINGLE_ID_RE = re.compile(
    r"""
    (<!--\s+wp:[^\s]+\s+\{[^}]*"id":)   # block header up to the "id" attribute
    (\d+)                               # the ID
    ([^\d>]+)                           # the rest of the header
    """,
    re.IGNORECASE | re.DOTALL | re.VERBOSE,
)

_BLOCK_MULTIPLE_IDS_RE = re.compile(
    r"""
    (<!--\s+wp:[^\s]+\s+\{[^}]*"ids":\[)  # block header up to the "ids" list
    ([\d,\s]+)                            # the IDs
    (\][^\d>]+)                           # the rest of the header
    """,
    re.IGNORECASE | re.DOTALL | re.VERBOSE,
)

_IMG_CLASS_RE = re.compile(
    r"""
    (<img\b[^>]*?\bclass="[^"]*?\bwp-image-)
    (\d+)
    ((?!\d)[^>]*>)
    """,
    re.IGNORECASE | re.DOTALL | re.VERBOSE,
)

_IMG_DATA_ID_RE = re.compile(
    r"""
    (<img\b[^>]*?\bdata-id=")
    (\d+)
    ("[^>]*>)
    """,
    re.IGNORECASE | re.DOTALL | re.VERBOSE,
)


def _replace_id(ids_map: IdsMap) -> Callable[[re.Match], str]:
    def repl(match: re.Match) -> str:
        id_old = int(match.group(2))
        if id_old not in ids_map:
            return match.group(0)
        return f"{match.group(1)}{ids_map[id_old]}{match.group(3)}"

    return repl


def update_gutenberg_blocks_single_id(text: str, ids_map: IdsMap) -> str:
    """Rewrite ``"id":<ID>`` in block headers."""
    if not text or not ids_map:
        return text
    return _BLOCK_SINGLE_ID_RE.sub(_replace_id(ids_map), text)


def update_gutenberg_blocks_multiple_ids(text: str, ids_map: IdsMap) -> str:
    """Rewrite each ID of ``"ids":[<ID>,<ID>,...]`` in block headers.

    >>> update_gutenberg_blocks_multiple_ids('<!-- wp:gallery {"ids":[10,20,30]} -->', {10: 11, 30: 31})
    '<!-- wp:gallery {"ids":[11,20,31]} -->'
    """
    if not text or not ids_map:
        return text

    def repl(match: re.Match) -> str:
        tokens = match.group(2).split(",")
        changed = False
        for i, token in enumerate(tokens):
            value = token.strip()
            if value.isdigit() and int(value) in ids_map:
                # Keep the whitespace around the number.
                tokens[i] = token.replace(value, str(ids_map[int(value)]), 1)
                changed = True
        if not changed:
            return match.group(0)
        return f"{match.group(1)}{','.join(tokens)}{match.group(3)}"

    return _BLOCK_MULTIPLE_IDS_RE.sub(repl, text)


def update_image_element_class_attribute(text: str, ids_map: IdsMap) -> str:
    """Rewrite the ``wp-image-<ID>`` class of ``<img>`` elements."""
    if not text or not ids_map:
        return text
    return _IMG_CLASS_RE.sub(_replace_id(ids_map), text)


def update_image_element_data_id_attribute(text: str, ids_map: IdsMap) -> str:
    """Rewrite the ``data-id="<ID>"`` attribute of ``<img>`` elements."""
    if not text or not ids_map:
        return text
    return _IMG_DATA_ID_RE.sub(_replace_id(ids_map), text)


REWRITERS = (
    update_gutenberg_blocks_single_id,
    update_gutenberg_blocks_multiple_ids,
    update_image_element_class_attribute,
    update_image_element_data_id_attribute,
)


def update_all_ids(text: str, ids_map: IdsMap, rewriters: Iterable[Callable[[str, IdsMap], str]] = REWRITERS) -> str:
    """Apply every rewrite rule to ``text``."""
    for rewrite in rewriters:
        text = rewrite(text, ids_map)
    return text
