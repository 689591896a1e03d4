from datetime import datetime, timedelta

import pytest

from errors import NotFound, ValidationFailed
from post_service import default_excerpt, reading_time
from schemas import PostCreate


def words(n):
    return " ".join(["word"] * n)


def new_post(posts, **overrides):
    data = {"title": "Hello", "description": "A short description", "content": words(10)}
    data.update(overrides)
    return posts.create_post(PostCreate(**data))


@pytest.mark.parametrize("count, minutes", [(1, 1), (200, 1), (201, 2), (400, 2), (401, 3)])
def test_reading_time(count, minutes):
    assert reading_time(words(count)) == minutes


def test_reading_time_is_at_least_one_minute():
    assert reading_time("   ") == 1


def test_excerpt_boundaries():
    assert default_excerpt("x" * 150) == "x" * 150
    long = default_excerpt("x" * 151)
    assert long == "x" * 150 + "..."
    assert len(long) == 153


def test_create_post_defaults(posts):
    post = new_post(posts, content=words(201), tags=[" python ", "python", "", "web"])

    assert post["reading_time"] == 2
    assert post["excerpt"] == "A short description"
    assert post["category"] == "General"
    assert post["author_id"] == "admin"
    assert post["author_name"] == "Admin"
    assert post["tags"] == ["python", "web"]
    assert (post["views"], post["likes"], post["comments"]) == (0, 0, 0)
    assert post["is_published"] is False


def test_create_post_truncates_long_description(posts):
    post = new_post(posts, description="d" * 200)
    assert post["excerpt"] == "d" * 150 + "..."


def test_create_post_keeps_explicit_excerpt(posts):
    post = new_post(posts, description="d" * 200, excerpt="Custom")
    assert post["excerpt"] == "Custom"


def test_update_post_recomputes_reading_time(posts):
    post = new_post(posts)

    updated = posts.update_post(post["id"], {"content": words(450), "title": "New"})

    assert updated["title"] == "New"
    assert updated["reading_time"] == 3
    assert updated["created_at"] == posts.get_post_by_id(post["id"])["created_at"]


def test_update_missing_post_writes_nothing(posts):
    with pytest.raises(NotFound) as exc:
        posts.update_post("missing", {"title": "x"})

    assert exc.value.message == "Post not found"
    assert posts.posts.count_documents({}) == 0


def test_delete_post(posts):
    post = new_post(posts)

    posts.delete_post(post["id"])

    with pytest.raises(NotFound):
        posts.delete_post(post["id"])
    with pytest.raises(NotFound):
        posts.get_post_by_id(post["id"])


def test_posts_by_status_and_sort_order(posts, db):
    now = datetime(2024, 1, 10)
    for i, published in enumerate([True, False, True]):
        db.posts.insert_one({
            "id": f"p{i}", "title": f"t{i}", "is_published": published, "is_featured": False,
            "created_at": now + timedelta(days=i),
        })

    assert [p["id"] for p in posts.get_all_posts()] == ["p2", "p1", "p0"]
    assert [p["id"] for p in posts.get_posts_by_status("published")] == ["p2", "p0"]
    assert [p["id"] for p in posts.get_posts_by_status("draft")] == ["p1"]
    with pytest.raises(ValidationFailed):
        posts.get_posts_by_status("archived")


def test_increment_views(posts):
    post = new_post(posts)

    posts.increment_views(post["id"])
    posts.increment_views(post["id"])

    assert posts.get_post_by_id(post["id"])["views"] == 2


def test_stats(posts, db):
    db.posts.insert_many([
        {"id": "a", "is_published": True, "is_featured": True, "views": 10, "likes": 2, "comments": 1},
        {"id": "b", "is_published": True, "is_featured": False, "views": 5, "likes": 0, "comments": 3},
        {"id": "c", "is_published": False, "is_featured": False, "views": 0, "likes": 1, "comments": 0},
    ])

    assert posts.get_stats() == {
        "total_posts": 3,
        "published_posts": 2,
        "draft_posts": 1,
        "featured_posts": 1,
        "total_views": 15,
        "total_likes": 3,
        "total_comments": 4,
    }


def test_stats_empty_collection(posts):
    stats = posts.get_stats()
    assert stats["total_posts"] == 0
    assert stats["total_views"] == 0


def test_list_published_filters(posts):
    new_post(posts, title="Django tips", category="Web", tags=["Python"], is_published=True, is_featured=True)
    new_post(posts, title="Rust notes", category="Systems", tags=["rust"], is_published=True)
    new_post(posts, title="Draft", category="Web", is_published=False)

    everything = posts.list_published()
    assert everything["total_posts"] == 2
    assert sorted(everything["categories"]) == ["Systems", "Web"]
    assert [p["title"] for p in everything["featured_posts"]] == ["Django tips"]

    assert [p["title"] for p in posts.list_published(category="web")["posts"]] == ["Django tips"]
    assert [p["title"] for p in posts.list_published(tag="RUST")["posts"]] == ["Rust notes"]
    assert [p["title"] for p in posts.list_published(search="django")["posts"]] == ["Django tips"]

    paged = posts.list_published(page=2, limit=1)
    assert len(paged["posts"]) == 1
    assert paged["total_pages"] == 2
    assert paged["current_page"] == 2


def test_related_posts_share_category(posts):
    main = new_post(posts, category="Web", is_published=True)
    new_post(posts, title="Sibling", category="Web", is_published=True)
    new_post(posts, title="Hidden", category="Web", is_published=False)
    new_post(posts, title="Other", category="Misc", is_published=True)

    assert [p["title"] for p in posts.get_related_posts(main)] == ["Sibling"]


def test_update_post_ignores_nulls(posts):
    post = new_post(posts, content=words(450), category="Web")

    updated = posts.update_post(post["id"], {"content": None, "description": None, "category": None, "title": "New"})

    assert updated["title"] == "New"
    assert updated["content"] == words(450)
    assert updated["reading_time"] == 3
    assert updated["description"] == "A short description"
    assert updated["category"] == "Web"


def test_list_published_tolerates_missing_text_fields(posts, db):
    db.posts.insert_one({"id": "legacy", "title": "Legacy", "is_published": True, "description": None, "category": None})

    assert posts.list_published(search="zzz")["posts"] == []
    assert posts.list_published(category="web")["posts"] == []
    assert [p["id"] for p in posts.list_published(search="legacy")["posts"]] == ["legacy"]
