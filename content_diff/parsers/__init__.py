"""
Parsers of post content.

Currently this subpackage exposes the attachment ID rewriting rules from
:mod:`content_diff.parsers.block_ids` and ``find_images`` from
:mod:`content_diff.parsers.images`.
"""

from .block_ids import (
    update_all_ids,
    update_gutenberg_blocks_multiple_ids,
    update_gutenberg_blocks_single_id,
    update_image_element_class_attribute,
    update_image_element_data_id_attribute,
)
from .images import find_images

__all__ = [
    "update_all_ids",
    "update_gutenberg_blocks_multiple_ids",
    "update_gutenberg_blocks_single_id",
    "update_image_element_class_attribute",
    "update_image_element_data_id_attribute",
    "find_images",
]
