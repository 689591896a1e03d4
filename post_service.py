import logging
import math
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from database import POSTS, PUBLIC, create_document, get_documents, new_id, utcnow
from errors import NotFound, ValidationFailed
from schemas import PostCreate

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 150
NEWEST_FIRST = [("created_at", DESCENDING)]


def reading_time(content: str) -> int:
    words = len(content.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def default_excerpt(description: str) -> str:
    if len(description) <= EXCERPT_LENGTH:
        return description
    return description[:EXCERPT_LENGTH] + "..."


class PostService:
    def __init__(self, db: Database):
        self.posts = db[POSTS]
        self.db = db

    def create_post(self, data: PostCreate) -> Dict[str, Any]:
        doc = {
            "id": new_id(),
            "title": data.title,
            "description": data.description,
            "content": data.content,
            "excerpt": data.excerpt or default_excerpt(data.description),
            "cover_image": data.cover_image or "",
            "category": data.category or "General",
            "tags": data.tags,
            "is_published": data.is_published,
            "is_featured": data.is_featured,
            "author_id": data.author_id or "admin",
            "author_name": data.author_name or "Admin",
            "views": 0,
            "likes": 0,
            "comments": 0,
            "reading_time": reading_time(data.content),
        }
        post = create_document(self.db, POSTS, doc)
        logger.info("Created post %s", post["id"])
        return post

    def get_all_posts(self) -> List[Dict[str, Any]]:
        return get_documents(self.db, POSTS, sort=NEWEST_FIRST)

    def get_posts_by_status(self, status: str) -> List[Dict[str, Any]]:
        if status not in ("published", "draft"):
            raise ValidationFailed("Invalid status", status=status)
        return get_documents(self.db, POSTS, {"is_published": status == "published"}, sort=NEWEST_FIRST)

    def get_featured_posts(self, published_only: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"is_featured": True}
        if published_only:
            query["is_published"] = True
        return get_documents(self.db, POSTS, query, limit=limit, sort=NEWEST_FIRST)

    def get_post_by_id(self, post_id: str) -> Dict[str, Any]:
        post = self.posts.find_one({"id": post_id}, PUBLIC)
        if not post:
            raise NotFound("Post not found", id=post_id)
        return post

    def update_post(self, post_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        # null means "leave unchanged"
        changes = {k: v for k, v in updates.items() if v is not None and k not in ("id", "_id", "created_at")}
        if "content" in changes:
            changes["reading_time"] = reading_time(changes["content"])
        changes["updated_at"] = utcnow()
        post = self.posts.find_one_and_update(
            {"id": post_id},
            {"$set": changes},
            projection=PUBLIC,
            return_document=True,
        )
        if not post:
            raise NotFound("Post not found", id=post_id)
        return post

    def delete_post(self, post_id: str) -> None:
        res = self.posts.delete_one({"id": post_id})
        if res.deleted_count == 0:
            raise NotFound("Post not found", id=post_id)
        logger.info("Deleted post %s", post_id)

    def increment_views(self, post_id: str) -> None:
        self.posts.update_one({"id": post_id}, {"$inc": {"views": 1}})

    def list_published(
        self,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        published = get_documents(self.db, POSTS, {"is_published": True}, sort=NEWEST_FIRST)

        filtered = published
        if category:
            filtered = [p for p in filtered if (p.get("category") or "").lower() == category.lower()]
        if tag:
            filtered = [p for p in filtered if any(t.lower() == tag.lower() for t in p.get("tags", []))]
        if search:
            needle = search.lower()
            filtered = [
                p for p in filtered
                if any(needle in (p.get(f) or "").lower() for f in ("title", "description", "content", "excerpt"))
                or any(needle in t.lower() for t in p.get("tags", []))
            ]

        page = max(page, 1)
        limit = max(limit, 1)
        start = (page - 1) * limit

        categories: List[str] = []
        tags: List[str] = []
        for p in published:
            if p.get("category") not in categories:
                categories.append(p.get("category"))
            for t in p.get("tags", []):
                if t not in tags:
                    tags.append(t)

        return {
            "posts": filtered[start:start + limit],
            "featured_posts": [p for p in published if p.get("is_featured")][:3],
            "total_posts": len(filtered),
            "total_pages": math.ceil(len(filtered) / limit),
            "current_page": page,
            "categories": categories,
            "tags": tags[:20],
        }

    def get_related_posts(self, post: Dict[str, Any], limit: int = 3) -> List[Dict[str, Any]]:
        query = {"is_published": True, "category": post.get("category"), "id": {"$ne": post["id"]}}
        return get_documents(self.db, POSTS, query, limit=limit, sort=NEWEST_FIRST)

    def get_stats(self) -> Dict[str, int]:
        stats = {
            "total_posts": 0,
            "published_posts": 0,
            "draft_posts": 0,
            "featured_posts": 0,
            "total_views": 0,
            "total_likes": 0,
            "total_comments": 0,
        }
        fields = {"_id": 0, "is_published": 1, "is_featured": 1, "views": 1, "likes": 1, "comments": 1}
        for p in self.posts.find({}, fields):
            stats["total_posts"] += 1
            if p.get("is_published"):
                stats["published_posts"] += 1
            else:
                stats["draft_posts"] += 1
            if p.get("is_featured"):
                stats["featured_posts"] += 1
            stats["total_views"] += p.get("views", 0)
            stats["total_likes"] += p.get("likes", 0)
            stats["total_comments"] += p.get("comments", 0)
        return stats
