"""Live site content shared by the fetcher, importer and migration tests."""

from __future__ import annotations

from typing import Any, Dict

from testes.wp_tables import LIVE, LOCAL, add, add_post, add_term


def seed_local_site(db) -> Dict[str, Any]:
    """Local content that pushes local auto increment IDs away from the live ones."""
    admin = add(db, LOCAL + "users", user_login="admin", user_email="admin@local.test")
    first = add_post(db, LOCAL, post_title="Hello World", post_author=admin, post_date="2019-01-01 00:00:00")
    for _ in range(3):
        add(db, LOCAL + "comments", comment_post_ID=first, comment_content="old")
        add(db, LOCAL + "postmeta", post_id=first, meta_key="filler", meta_value="x")
    uncategorized = add_term(db, LOCAL, "Uncategorized", "category")
    return {"admin": admin, "first_post": first, "uncategorized": uncategorized}


def seed_live_post(db) -> Dict[str, Any]:
    """Live post 500 with meta, an author, two commenters, a category and a tag."""
    add(db, LIVE + "users", ID=5, user_login="jdoe", user_email="jdoe@live.test")
    add(db, LIVE + "usermeta", user_id=5, meta_key="nickname", meta_value="JD")
    add(db, LIVE + "usermeta", user_id=5, meta_key="description", meta_value="Writer")
    add(db, LIVE + "users", ID=6, user_login="reader", user_email="reader@live.test")
    add(db, LIVE + "usermeta", user_id=6, meta_key="nickname", meta_value="R")
    add(db, LIVE + "users", ID=7, user_login="critic", user_email="critic@live.test")

    post_id = add_post(
        db,
        LIVE,
        ID=500,
        post_title="Live Story",
        post_author=5,
        post_date="2024-05-01 09:00:00",
        post_content='<!-- block {"id":500} -->',
        comment_count=2,
    )
    add(db, LIVE + "postmeta", post_id=500, meta_key="color", meta_value="red")
    add(db, LIVE + "postmeta", post_id=500, meta_key="size", meta_value="L")

    c1 = add(db, LIVE + "comments", comment_ID=900, comment_post_ID=500, comment_content="First!", user_id=6)
    c2 = add(
        db, LIVE + "comments", comment_ID=901, comment_post_ID=500, comment_content="Reply", user_id=7, comment_parent=900
    )
    for comment_id in (c1, c2):
        add(db, LIVE + "commentmeta", comment_id=comment_id, meta_key="rating", meta_value="5")
        add(db, LIVE + "commentmeta", comment_id=comment_id, meta_key="akismet", meta_value="ok")

    news = add_term(db, LIVE, "News", "category", description="All the news")
    tag = add_term(db, LIVE, "Python", "post_tag")
    add(db, LIVE + "termmeta", term_id=tag["term_id"], meta_key="color", meta_value="blue")
    add(db, LIVE + "term_relationships", object_id=500, term_taxonomy_id=news["term_taxonomy_id"])
    add(db, LIVE + "term_relationships", object_id=500, term_taxonomy_id=tag["term_taxonomy_id"])
    # Dangling references which the fetcher drops.
    add(db, LIVE + "term_relationships", object_id=500, term_taxonomy_id=999)
    orphan_tt = add(db, LIVE + "term_taxonomy", term_id=888, taxonomy="post_tag")
    add(db, LIVE + "term_relationships", object_id=500, term_taxonomy_id=orphan_tt)

    return {"post_id": post_id, "comments": (c1, c2), "news": news, "tag": tag}
