import os
import sys

import pytest

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from content_diff.migrators.categories import CategoryTreeMigrator
from content_diff.utils.terms import slugify, unique_term_slug
from testes.wp_tables import LIVE, LOCAL, add_term, rows


def _local_category(db, term_id):
    return db.get_row(
        "SELECT t.name, t.slug, tt.parent, tt.description FROM wp_terms t "
        "JOIN wp_term_taxonomy tt ON tt.term_id = t.term_id WHERE t.term_id = %s",
        [term_id],
    )


def test_tree_is_recreated_parents_first(db):
    add_term(db, LIVE, "Parent", "category", term_id=30)
    add_term(db, LIVE, "Child", "category", parent=30, term_id=20)
    add_term(db, LIVE, "Grandchild", "category", parent=20, term_id=10)

    migrator = CategoryTreeMigrator(db, LOCAL)
    term_map = migrator.recreate_categories(LIVE)

    assert set(term_map) == {10, 20, 30}
    assert [_local_category(db, t)["name"] for t in migrator.created_term_ids] == ["Parent", "Child", "Grandchild"]
    assert _local_category(db, term_map[30])["parent"] == 0
    assert _local_category(db, term_map[20])["parent"] == term_map[30]
    assert _local_category(db, term_map[10])["parent"] == term_map[20]


def test_existing_local_category_is_reused(db):
    local = add_term(db, LOCAL, "Uncategorized", "category")
    add_term(db, LIVE, "Uncategorized", "category", term_id=1)

    migrator = CategoryTreeMigrator(db, LOCAL)
    assert migrator.recreate_categories(LIVE) == {1: local["term_id"]}
    assert migrator.created_term_ids == []


def test_rerun_creates_nothing_new(db):
    add_term(db, LIVE, "Parent", "category", term_id=3)
    add_term(db, LIVE, "Child", "category", parent=3, term_id=4)

    first = CategoryTreeMigrator(db, LOCAL).recreate_categories(LIVE)
    again = CategoryTreeMigrator(db, LOCAL)
    assert again.recreate_categories(LIVE) == first
    assert again.created_term_ids == []


def test_same_name_under_another_parent_is_a_new_category(db):
    add_term(db, LOCAL, "Reviews", "category")
    add_term(db, LIVE, "Books", "category", term_id=1)
    add_term(db, LIVE, "Reviews", "category", parent=1, term_id=2)

    term_map = CategoryTreeMigrator(db, LOCAL).recreate_categories(LIVE)
    reviews = _local_category(db, term_map[2])
    assert reviews["parent"] == term_map[1]
    assert reviews["slug"] == "reviews-2"


def test_categories_with_nonexistent_parents_are_found_and_reset(db):
    add_term(db, LIVE, "Fine", "category", term_id=1)
    orphan = add_term(db, LIVE, "Orphan", "category", parent=777, term_id=2)

    migrator = CategoryTreeMigrator(db, LOCAL)
    found = migrator.get_categories_with_nonexistent_parents(LIVE)
    assert [c["name"] for c in found] == ["Orphan"]

    assert migrator.reset_categories_parents(LIVE, [c["term_taxonomy_id"] for c in found]) == 1
    assert rows(db, LIVE + "term_taxonomy", term_taxonomy_id=orphan["term_taxonomy_id"])[0]["parent"] == 0
    assert migrator.get_categories_with_nonexistent_parents(LIVE) == []
    assert migrator.reset_categories_parents(LIVE, []) == 0


def test_orphan_category_is_recreated_at_the_root(db):
    add_term(db, LIVE, "Orphan", "category", parent=777, term_id=2)
    term_map = CategoryTreeMigrator(db, LOCAL).recreate_categories(LIVE)
    assert _local_category(db, term_map[2])["parent"] == 0


def test_parent_loop_is_detected(db):
    add_term(db, LIVE, "A", "category", parent=2, term_id=1)
    add_term(db, LIVE, "B", "category", parent=1, term_id=2)
    with pytest.raises(ValueError):
        CategoryTreeMigrator(db, LOCAL).recreate_categories(LIVE)


def test_tags_are_not_categories(db):
    add_term(db, LIVE, "Python", "post_tag", term_id=5)
    assert CategoryTreeMigrator(db, LOCAL).recreate_categories(LIVE) == {}


def test_slugify_and_unique_slug(db):
    assert slugify("Dicas &amp; Hacks") == "dicas-hacks"
    assert slugify("Saúde financeira") == "saude-financeira"
    add_term(db, LOCAL, "News", "category")
    assert unique_term_slug(db, LOCAL, "News") == "news-2"
    assert unique_term_slug(db, LOCAL, "Sports") == "sports"
