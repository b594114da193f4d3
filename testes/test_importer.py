import os
import sys

import pytest

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from content_diff.database import RowInsertError
from content_diff.extractors.post_data import PostDataFetcher
from content_diff.migrators.categories import CategoryTreeMigrator
from content_diff.migrators.importer import PostImporter
from testes.live_fixtures import seed_live_post, seed_local_site
from testes.wp_tables import LIVE, LOCAL, add, add_term, rows


def _import(db):
    category_map = CategoryTreeMigrator(db, LOCAL).recreate_categories(LIVE)
    data = PostDataFetcher(db).get_post_data(500, LIVE)
    new_id, errors = PostImporter(db, LOCAL).import_post(data, category_map)
    return new_id, errors


def test_closure_completeness(db):
    seed_local_site(db)
    seed_live_post(db)
    new_id, errors = _import(db)

    assert errors == []
    assert new_id != 500

    postmeta = rows(db, LOCAL + "postmeta", post_id=new_id)
    assert {m["meta_key"]: m["meta_value"] for m in postmeta} == {"color": "red", "size": "L"}

    comments = rows(db, LOCAL + "comments", comment_post_ID=new_id)
    assert len(comments) == 2
    comment_ids = {c["comment_ID"] for c in comments}
    assert comment_ids.isdisjoint({900, 901})

    commentmeta = [m for m in rows(db, LOCAL + "commentmeta") if m["comment_id"] in comment_ids]
    assert len(commentmeta) == 4

    relationships = rows(db, LOCAL + "term_relationships", object_id=new_id)
    assert len(relationships) == 2
    local_tt_ids = {r["term_taxonomy_id"] for r in rows(db, LOCAL + "term_taxonomy")}
    assert {r["term_taxonomy_id"] for r in relationships} <= local_tt_ids


def test_users_are_created_and_foreign_keys_remapped(db):
    seed_local_site(db)
    seed_live_post(db)
    new_id, _ = _import(db)

    users = {u["user_login"]: u["ID"] for u in rows(db, LOCAL + "users")}
    assert set(users) == {"admin", "jdoe", "reader", "critic"}

    post = rows(db, LOCAL + "posts", ID=new_id)[0]
    assert post["post_author"] == users["jdoe"]
    assert post["post_author"] != 5
    assert {m["meta_key"] for m in rows(db, LOCAL + "usermeta", user_id=users["jdoe"])} == {"nickname", "description"}

    by_content = {c["comment_content"]: c for c in rows(db, LOCAL + "comments", comment_post_ID=new_id)}
    assert by_content["First!"]["user_id"] == users["reader"]
    assert by_content["Reply"]["user_id"] == users["critic"]
    assert by_content["Reply"]["comment_parent"] == by_content["First!"]["comment_ID"]


def test_existing_user_is_reused_by_login(db):
    seed_local_site(db)
    existing = add(db, LOCAL + "users", user_login="jdoe", user_email="jdoe@local.test")
    seed_live_post(db)
    new_id, errors = _import(db)

    assert errors == []
    assert rows(db, LOCAL + "posts", ID=new_id)[0]["post_author"] == existing
    assert len(rows(db, LOCAL + "users", user_login="jdoe")) == 1
    assert rows(db, LOCAL + "usermeta", user_id=existing) == []


def test_tag_is_created_with_term_meta_or_reused(db):
    seed_local_site(db)
    seed_live_post(db)
    new_id, _ = _import(db)

    tag = db.get_row(
        "SELECT t.term_id, tt.term_taxonomy_id FROM wp_terms t JOIN wp_term_taxonomy tt ON tt.term_id = t.term_id "
        "WHERE t.name = %s AND tt.taxonomy = %s",
        ["Python", "post_tag"],
    )
    assert tag is not None
    assert rows(db, LOCAL + "termmeta", term_id=tag["term_id"])[0]["meta_value"] == "blue"
    assert rows(db, LOCAL + "term_relationships", object_id=new_id, term_taxonomy_id=tag["term_taxonomy_id"])


def test_existing_tag_is_reused(db):
    seed_local_site(db)
    local_tag = add_term(db, LOCAL, "Python", "post_tag")
    seed_live_post(db)
    new_id, _ = _import(db)

    python_terms = [t for t in rows(db, LOCAL + "terms") if t["name"] == "Python"]
    assert len(python_terms) == 1
    assert rows(db, LOCAL + "term_relationships", object_id=new_id, term_taxonomy_id=local_tag["term_taxonomy_id"])


def test_category_missing_from_map_is_reported_and_import_continues(db):
    seed_local_site(db)
    seed_live_post(db)
    data = PostDataFetcher(db).get_post_data(500, LIVE)
    new_id, errors = PostImporter(db, LOCAL).import_post(data, {})

    assert len(errors) == 1
    assert "News" in errors[0]
    # Tag relationship and meta still went in.
    assert len(rows(db, LOCAL + "term_relationships", object_id=new_id)) == 1
    assert len(rows(db, LOCAL + "postmeta", post_id=new_id)) == 2


def test_failed_inserts_are_collected_not_raised(db, monkeypatch):
    seed_local_site(db)
    seed_live_post(db)
    original_insert = db.insert

    def insert(table, row):
        if table == LOCAL + "commentmeta":
            return 0
        return original_insert(table, row)

    monkeypatch.setattr(db, "insert", insert)
    new_id, errors = _import(db)

    assert len(errors) == 4
    assert all("commentmeta" in e for e in errors)
    assert len(rows(db, LOCAL + "comments", comment_post_ID=new_id)) == 2


def test_failed_post_insert_raises(db, monkeypatch):
    seed_live_post(db)
    data = PostDataFetcher(db).get_post_data(500, LIVE)
    monkeypatch.setattr(db, "insert", lambda table, row: 0)
    with pytest.raises(RowInsertError):
        PostImporter(db, LOCAL).import_post(data, {})


def test_author_missing_from_live_users_becomes_no_author(db):
    seed_live_post(db)
    db.delete(LIVE + "users", {"ID": 5})
    new_id, errors = _import(db)
    assert errors == []
    assert rows(db, LOCAL + "posts", ID=new_id)[0]["post_author"] == 0


def test_delete_posts_removes_related_rows(db):
    seed_local_site(db)
    seed_live_post(db)
    new_id, _ = _import(db)

    assert PostImporter(db, LOCAL).delete_posts([new_id]) == [new_id]
    assert rows(db, LOCAL + "posts", ID=new_id) == []
    assert rows(db, LOCAL + "postmeta", post_id=new_id) == []
    assert rows(db, LOCAL + "comments", comment_post_ID=new_id) == []
    assert rows(db, LOCAL + "term_relationships", object_id=new_id) == []
    assert PostImporter(db, LOCAL).delete_posts([new_id]) == []
