import os
import sys

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from content_diff.parsers.block_ids import (
    update_all_ids,
    update_gutenberg_blocks_multiple_ids,
    update_gutenberg_blocks_single_id,
    update_image_element_class_attribute,
    update_image_element_data_id_attribute,
)


def test_single_id_in_block_header_is_rewritten_and_other_numbers_untouched():
    content = (
        '<!-- wp:image {"id":123,"sizeSlug":"large"} -->\n'
        '<figure class="wp-block-image"><img src="https://site.test/photo-123.jpg" alt="123"/></figure>\n'
        "<!-- /wp:image -->\n"
        "<!-- wp:paragraph --><p>Room 123 is open.</p><!-- /wp:paragraph -->"
    )
    result = update_gutenberg_blocks_single_id(content, {123: 456})
    assert '<!-- wp:image {"id":456,"sizeSlug":"large"} -->' in result
    assert "photo-123.jpg" in result
    assert 'alt="123"' in result
    assert "Room 123 is open." in result


def test_single_id_only_replaces_mapped_ids():
    content = '<!-- wp:image {"id":7} --><!-- wp:image {"id":8} -->'
    assert update_gutenberg_blocks_single_id(content, {8: 80}) == '<!-- wp:image {"id":7} --><!-- wp:image {"id":80} -->'


def test_single_id_does_not_match_longer_number_prefix():
    content = '<!-- wp:image {"id":1234} -->'
    assert update_gutenberg_blocks_single_id(content, {123: 9}) == content


def test_single_id_requires_block_header():
    content = '<p>{"id":123}</p> <!-- block {"id":123} -->'
    assert update_gutenberg_blocks_single_id(content, {123: 456}) == content


def test_multiple_ids_partial_rewrite():
    content = '<!-- wp:gallery {"ids":[10,20,30],"linkTo":"none"} -->'
    result = update_gutenberg_blocks_multiple_ids(content, {10: 11, 30: 31})
    assert result == '<!-- wp:gallery {"ids":[11,20,31],"linkTo":"none"} -->'


def test_multiple_ids_keep_spacing_when_nothing_is_mapped():
    content = '<!-- wp:gallery {"ids":[10, 20]} -->'
    assert update_gutenberg_blocks_multiple_ids(content, {99: 1}) == content


def test_multiple_ids_keep_spacing_around_rewritten_ids():
    content = '<!-- wp:gallery {"ids":[10, 20, 30]} -->'
    result = update_gutenberg_blocks_multiple_ids(content, {20: 21})
    assert result == '<!-- wp:gallery {"ids":[10, 21, 30]} -->'


def test_multiple_ids_leave_unrelated_lists_alone():
    content = '<!-- wp:gallery {"ids":[10]} --><p>[10,20]</p>'
    assert update_gutenberg_blocks_multiple_ids(content, {10: 99}) == '<!-- wp:gallery {"ids":[99]} --><p>[10,20]</p>'


def test_image_class_attribute():
    content = '<img class="alignnone size-full wp-image-42" src="a.jpg"/><img class="wp-image-420" src="b.jpg"/>'
    result = update_image_element_class_attribute(content, {42: 7})
    assert 'class="alignnone size-full wp-image-7"' in result
    assert 'class="wp-image-420"' in result


def test_image_data_id_attribute():
    content = '<img src="a.jpg" data-id="15" class="x"/><div data-id="15"></div>'
    result = update_image_element_data_id_attribute(content, {15: 51})
    assert '<img src="a.jpg" data-id="51" class="x"/>' in result
    assert '<div data-id="15"></div>' in result


def test_update_all_ids_applies_every_rule():
    content = (
        '<!-- wp:image {"id":5} --><figure><img src="x.jpg" class="wp-image-5" data-id="5"/></figure><!-- /wp:image -->'
        '<!-- wp:gallery {"ids":[5,6]} -->'
    )
    result = update_all_ids(content, {5: 50})
    assert result == (
        '<!-- wp:image {"id":50} --><figure><img src="x.jpg" class="wp-image-50" data-id="50"/></figure><!-- /wp:image -->'
        '<!-- wp:gallery {"ids":[50,6]} -->'
    )


def test_chained_mappings_are_applied_once():
    content = '<!-- wp:image {"id":1} --><!-- wp:image {"id":2} -->'
    assert update_gutenberg_blocks_single_id(content, {1: 2, 2: 3}) == '<!-- wp:image {"id":2} --><!-- wp:image {"id":3} -->'


def test_empty_inputs_are_returned_unchanged():
    assert update_all_ids("", {1: 2}) == ""
    assert update_all_ids('<!-- wp:image {"id":1} -->', {}) == '<!-- wp:image {"id":1} -->'
