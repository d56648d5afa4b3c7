import logging
from datetime import date

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.auth.permissions import PermissionName, has_permission
from app.config import settings
from app.content import common
from app.errors import AuthorizationError
from app.models.post import Post
from app.models.user import User
from app.schemas.post import PostIn
from app.storage.local import LocalStorage
from app.utils.payloads import columns

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (Post.title, Post.excerpt, Post.full_content, Post.author, Post.category)


def list_posts(db: Session, *, search=None, category=None, author=None, status=None, tags=None,
               date_from: date | None = None, date_to: date | None = None,
               sort_by=None, sort_order=None, page=1, per_page=15):
    query = db.query(Post)
    query = common.apply_search(query, search, SEARCH_FIELDS)
    if category:
        query = query.filter(Post.category == category)
    if author:
        query = query.filter(Post.author == author)
    query = common.apply_status(query, Post, status)
    query = common.apply_tags(query, Post.tags, tags)
    query = common.apply_date_range(query, Post.publish_date, date_from, date_to)
    query = common.apply_sort(query, Post, sort_by, sort_order)
    items, meta = common.paginate(query, page, per_page)
    meta.update({
        "total_posts": db.query(Post).count(),
        "published_posts": db.query(Post).filter(Post.is_published.is_(True)).count(),
        "draft_posts": db.query(Post).filter(Post.is_published.is_(False)).count(),
        "categories": common.distinct_values(db, Post.category),
        "authors": common.distinct_values(db, Post.author),
    })
    return items, meta


def _store_image(storage: LocalStorage, image: UploadFile | None):
    if image is None or not image.filename:
        return None
    return storage.store("posts", image, field="image", max_mb=settings.max_image_mb, images_only=True)


def create_post(db: Session, storage: LocalStorage, actor: User, body: PostIn,
                image: UploadFile | None = None) -> Post:
    slug = common.resolve_slug(body.title, body.slug)
    common.ensure_unique(db, Post, {"title": body.title, "slug": slug})

    data = columns(body, exclude={"slug", "is_published"})
    post = Post(**data, slug=slug, is_published=bool(body.is_published), views_count=0)

    stored = _store_image(storage, image)
    if stored:
        post.image_path = stored.path
        post.image_url = storage.url(stored.path)

    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("Post %s created by user %s", post.id, actor.id)
    return post


def get_post(db: Session, key) -> Post:
    return common.find_by_key(db, Post, key, "Post")


def show_post(db: Session, key) -> Post:
    post = get_post(db, key)
    if post.is_published:
        db.query(Post).filter(Post.id == post.id).update(
            {Post.views_count: Post.views_count + 1}, synchronize_session=False
        )
        db.commit()
        db.refresh(post)
    return post


def update_post(db: Session, storage: LocalStorage, actor: User, post: Post, body: PostIn,
                image: UploadFile | None = None) -> Post:
    slug = common.resolve_slug(body.title, body.slug, current=post)
    common.ensure_unique(db, Post, {"title": body.title, "slug": slug}, exclude_id=post.id)

    data = columns(body, exclude={"slug", "is_published", "image_url"})
    for field, value in data.items():
        setattr(post, field, value)
    post.slug = slug
    if body.is_published is not None:
        post.is_published = body.is_published

    stored = _store_image(storage, image)
    if stored:
        storage.delete(post.image_path)
        post.image_path = stored.path
        post.image_url = storage.url(stored.path)
    elif body.image_url:
        storage.delete(post.image_path)
        post.image_path = None
        post.image_url = str(body.image_url)

    db.commit()
    db.refresh(post)
    logger.info("Post %s updated by user %s", post.id, actor.id)
    return post


def delete_post(db: Session, storage: LocalStorage, actor: User, post: Post) -> None:
    storage.delete(post.image_path)
    post_id = post.id
    db.delete(post)
    db.commit()
    logger.info("Post %s deleted by user %s", post_id, actor.id)


def toggle_published(db: Session, post: Post) -> Post:
    post.is_published = not post.is_published
    db.commit()
    db.refresh(post)
    return post


def get_stats(db: Session) -> dict:
    posts = db.query(Post)
    all_posts = posts.all()
    avg_reading = round(sum(p.reading_time for p in all_posts) / len(all_posts), 1) if all_posts else 0
    popular = posts.order_by(Post.views_count.desc(), Post.id).limit(5).all()
    return {
        "total_posts": len(all_posts),
        "published_posts": posts.filter(Post.is_published.is_(True)).count(),
        "draft_posts": posts.filter(Post.is_published.is_(False)).count(),
        "total_views": int(db.query(func.coalesce(func.sum(Post.views_count), 0)).scalar()),
        "recent_posts": common.count_recent(db, Post, 30),
        "popular_posts": [{"id": p.id, "title": p.title, "views_count": p.views_count} for p in popular],
        "categories_count": len(common.distinct_values(db, Post.category)),
        "authors_count": len(common.distinct_values(db, Post.author)),
        "avg_reading_time": avg_reading,
    }


def get_categories(db: Session) -> list[dict]:
    return common.category_breakdown(db, Post)


def get_tags(db: Session) -> list[dict]:
    counts: dict[str, dict] = {}
    for tags, published in db.query(Post.tags, Post.is_published).all():
        for tag in set(tags or []):
            entry = counts.setdefault(tag, {"name": tag, "count": 0, "published_count": 0})
            entry["count"] += 1
            if published:
                entry["published_count"] += 1
    return sorted(counts.values(), key=lambda t: (-t["count"], t["name"]))


BULK_PERMISSIONS = {
    "publish": PermissionName.PUBLISH_POSTS,
    "unpublish": PermissionName.PUBLISH_POSTS,
    "delete": PermissionName.DELETE_POSTS,
}


def bulk_action(db: Session, storage: LocalStorage, actor: User, action: str, ids: list[int]) -> str:
    required = BULK_PERMISSIONS[action]
    if not has_permission(actor, required):
        raise AuthorizationError(f"Missing permission: {required.value}")

    posts = common.load_bulk(db, Post, ids, "post_ids")
    for post in posts:
        if action == "publish":
            post.is_published = True
        elif action == "unpublish":
            post.is_published = False
        elif action == "delete":
            storage.delete(post.image_path)
            db.delete(post)
    db.commit()
    logger.info("Bulk %s on %d post(s) by user %s", action, len(posts), actor.id)
    verb = {"publish": "published", "unpublish": "unpublished", "delete": "deleted"}[action]
    return f"{len(posts)} post(s) {verb}"
