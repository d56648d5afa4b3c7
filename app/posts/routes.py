from datetime import date

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.auth.deps import get_db, require_permission, storage
from app.auth.permissions import PermissionName as P
from app.models.user import User
from app.posts import service
from app.schemas.common import PostBulkIn
from app.schemas.post import PostIn, PostOut
from app.storage.local import LocalStorage
from app.utils.payloads import serialize, serialize_many, validate
from app.utils.responses import envelope

router = APIRouter(tags=["posts"])


def _post_form(
    title: str = Form(...),
    slug: str | None = Form(None),
    excerpt: str | None = Form(None),
    full_content: str = Form(...),
    author: str = Form(...),
    publish_date: str = Form(...),
    category: str | None = Form(None),
    tags: list[str] = Form([]),
    image_url: str | None = Form(None),
    is_published: bool | None = Form(None),
) -> PostIn:
    return validate(PostIn, {
        "title": title, "slug": slug, "excerpt": excerpt, "full_content": full_content,
        "author": author, "publish_date": publish_date, "category": category,
        "tags": [t for t in tags if t], "image_url": image_url, "is_published": is_published,
    })


@router.get("/posts")
def list_posts(
    search: str | None = None,
    category: str | None = None,
    author: str | None = None,
    status: str | None = None,
    tags: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 15,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(P.VIEW_POSTS)),
):
    items, meta = service.list_posts(
        db, search=search, category=category, author=author, status=status, tags=tags,
        date_from=date_from, date_to=date_to, sort_by=sort_by, sort_order=sort_order,
        page=page, per_page=per_page,
    )
    return envelope(serialize_many(PostOut, items), meta=meta)


@router.post("/posts", status_code=status.HTTP_201_CREATED)
def create_post(
    body: PostIn = Depends(_post_form),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.CREATE_POSTS)),
):
    post = service.create_post(db, files, user, body, image)
    return envelope(serialize(PostOut, post), "Post created")


@router.get("/posts-stats")
def stats(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_POSTS))):
    return envelope(service.get_stats(db))


@router.get("/posts-categories")
def categories(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_POSTS))):
    return envelope(service.get_categories(db))


@router.get("/posts-tags")
def tags(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_POSTS))):
    return envelope(service.get_tags(db))


@router.post("/posts/bulk-action")
def bulk_action(
    body: PostBulkIn,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.EDIT_POSTS)),
):
    message = service.bulk_action(db, files, user, body.action, body.post_ids)
    return envelope(message=message)


@router.get("/posts/{key}")
def show_post(key: str, db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_POSTS))):
    return envelope(serialize(PostOut, service.show_post(db, key)))


@router.put("/posts/{key}")
def update_post(
    key: str,
    body: PostIn = Depends(_post_form),
    image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.EDIT_POSTS)),
):
    post = service.update_post(db, files, user, service.get_post(db, key), body, image)
    return envelope(serialize(PostOut, post), "Post updated")


@router.delete("/posts/{key}")
def delete_post(
    key: str,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.DELETE_POSTS)),
):
    service.delete_post(db, files, user, service.get_post(db, key))
    return envelope(message="Post deleted")


@router.patch("/posts/{key}/toggle-published")
def toggle_published(key: str, db: Session = Depends(get_db), user: User = Depends(require_permission(P.PUBLISH_POSTS))):
    post = service.toggle_published(db, service.get_post(db, key))
    state = "published" if post.is_published else "unpublished"
    return envelope(serialize(PostOut, post), f"Post {state}")
