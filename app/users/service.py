"""
Admin user management.

Every destructive path goes through ``_guard_admin_invariants`` before
touching the row: nobody deletes or deactivates themselves, and the system
never loses its last admin (or its last active admin). Counts are read
fresh at the time of the action.
"""
import logging
from datetime import timedelta

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.auth.permissions import RoleName, has_role, sync_roles
from app.auth.service import PROFILE_FIELDS, email_taken
from app.auth.tokens import revoke_all
from app.config import settings
from app.content.common import apply_search, apply_sort, get_or_404, paginate
from app.errors import AuthorizationError, ValidationError
from app.models.user import Role, User, user_roles
from app.schemas.user import UserCreate, UserUpdate
from app.storage.local import LocalStorage
from app.utils.clock import utcnow
from app.utils.payloads import plain
from app.utils.security import hash_password

logger = logging.getLogger(__name__)

UNSORTABLE = frozenset({"password_hash"})


def _with_role(db: Session, role: RoleName | str):
    name = role.value if isinstance(role, RoleName) else role
    return db.query(User).join(User.roles).filter(Role.name == name)


def count_admins(db: Session, active_only: bool = False) -> int:
    query = _with_role(db, RoleName.ADMIN)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.distinct().count()


def bootstrap_admin(db: Session, email: str | None, password: str | None,
                    name: str = "Administrator") -> User | None:
    """Give a fresh install its first administrator.

    Does nothing once any admin exists. An existing account with ``email``
    is promoted and reactivated instead of duplicated.
    """
    if count_admins(db):
        return None
    if not email or not password:
        logger.warning("No administrator exists; set ADMIN_EMAIL and ADMIN_PASSWORD to create one")
        return None
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(name=name, email=email, password_hash=hash_password(password), is_active=True)
        db.add(user)
        db.flush()
    else:
        user.is_active = True
    sync_roles(db, user, [RoleName.ADMIN])
    db.commit()
    db.refresh(user)
    logger.info("Bootstrapped administrator %s", user.email)
    return user


def _guard_admin_invariants(db: Session, actor: User | None, target: User, *,
                            deleting: bool = False, deactivating: bool = False,
                            dropping_admin: bool = False) -> None:
    if actor is not None and actor.id == target.id:
        if deleting:
            raise AuthorizationError("You cannot delete your own account")
        if deactivating:
            raise AuthorizationError("You cannot deactivate your own account")
    if not has_role(target, RoleName.ADMIN):
        return
    if (deleting or dropping_admin) and count_admins(db) <= 1:
        raise AuthorizationError("Cannot remove the last administrator")
    if target.is_active and (deactivating or dropping_admin) and count_admins(db, active_only=True) <= 1:
        raise AuthorizationError("Cannot deactivate the last active administrator")


def list_users(db: Session, *, search=None, role=None, status=None, sort_by=None,
               sort_order=None, page=1, per_page=15):
    query = db.query(User)
    query = apply_search(query, search, [User.name, User.email, User.bio])
    if role:
        query = query.filter(User.roles.any(Role.name == role))
    if status == "active":
        query = query.filter(User.is_active.is_(True))
    elif status == "inactive":
        query = query.filter(User.is_active.is_(False))
    query = apply_sort(query, User, sort_by, sort_order, exclude=UNSORTABLE)
    items, meta = paginate(query, page, per_page)
    meta.update({
        "total_users": db.query(User).count(),
        "active_users": db.query(User).filter(User.is_active.is_(True)).count(),
        "admin_users": count_admins(db),
        "editor_users": _with_role(db, RoleName.EDITOR).distinct().count(),
    })
    return items, meta


def _store_avatar(storage: LocalStorage, avatar: UploadFile | None) -> str | None:
    if avatar is None or not avatar.filename:
        return None
    return storage.store("avatars", avatar, field="avatar", max_mb=settings.max_image_mb, images_only=True).path


def create_user(db: Session, storage: LocalStorage, body: UserCreate, avatar: UploadFile | None = None) -> User:
    if email_taken(db, body.email):
        raise ValidationError.field("email", "The email has already been taken.")
    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        is_active=body.is_active,
        **{f: plain(getattr(body, f)) for f in PROFILE_FIELDS},
    )
    user.avatar = _store_avatar(storage, avatar)
    db.add(user)
    db.flush()
    sync_roles(db, user, [body.role])
    db.commit()
    db.refresh(user)
    logger.info("Created user %s with role %s", user.id, body.role.value)
    return user


def get_user(db: Session, user_id: int) -> User:
    return get_or_404(db, User, user_id, "User")


def update_user(db: Session, storage: LocalStorage, actor: User, user: User, body: UserUpdate,
                avatar: UploadFile | None = None) -> User:
    if email_taken(db, body.email, exclude_id=user.id):
        raise ValidationError.field("email", "The email has already been taken.")

    deactivating = body.is_active is False and user.is_active
    dropping_admin = has_role(user, RoleName.ADMIN) and body.role != RoleName.ADMIN
    _guard_admin_invariants(db, actor, user, deactivating=deactivating, dropping_admin=dropping_admin)

    new_avatar = _store_avatar(storage, avatar)
    if new_avatar:
        storage.delete(user.avatar)
        user.avatar = new_avatar

    user.name = body.name
    user.email = body.email
    for field in PROFILE_FIELDS:
        setattr(user, field, plain(getattr(body, field)))
    if body.is_active is not None:
        user.is_active = body.is_active
    if body.password:
        user.password_hash = hash_password(body.password)
    sync_roles(db, user, [body.role])
    if deactivating:
        revoke_all(db, user, commit=False)
    db.commit()
    db.refresh(user)
    logger.info("User %s updated by %s", user.id, actor.id)
    return user


def delete_user(db: Session, storage: LocalStorage, actor: User | None, user: User) -> None:
    _guard_admin_invariants(db, actor, user, deleting=True)
    storage.delete(user.avatar)
    user_id = user.id
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", user_id, actor.id if actor else None)


def toggle_status(db: Session, actor: User | None, user: User) -> User:
    deactivating = user.is_active
    _guard_admin_invariants(db, actor, user, deactivating=deactivating)
    user.is_active = not user.is_active
    if deactivating:
        revoke_all(db, user, commit=False)
    db.commit()
    db.refresh(user)
    logger.info("User %s %s", user.id, "activated" if user.is_active else "deactivated")
    return user


def list_roles(db: Session) -> list[dict]:
    return [{"id": r.id, "name": r.name} for r in db.query(Role).order_by(Role.id).all()]


def get_stats(db: Session) -> dict:
    role_counts = dict(
        db.query(Role.name, func.count(user_roles.c.user_id))
        .outerjoin(user_roles, user_roles.c.role_id == Role.id)
        .group_by(Role.name)
        .all()
    )
    return {
        "total_users": db.query(User).count(),
        "active_users": db.query(User).filter(User.is_active.is_(True)).count(),
        "inactive_users": db.query(User).filter(User.is_active.is_(False)).count(),
        **{f"{role.value}_users": role_counts.get(role.value, 0) for role in RoleName},
        "recent_users": db.query(User).filter(User.created_at >= utcnow() - timedelta(days=30)).count(),
    }


def user_stats(db: Session, user: User) -> dict:
    """Content attributed to the user by author name."""
    from app.models.download import Download
    from app.models.post import Post

    posts = db.query(Post).filter(Post.author == user.name)
    downloads = db.query(Download).filter(Download.author == user.name)
    return {
        "posts_count": posts.count(),
        "published_posts_count": posts.filter(Post.is_published.is_(True)).count(),
        "downloads_count": downloads.count(),
        "total_post_views": int(posts.with_entities(func.coalesce(func.sum(Post.views_count), 0)).scalar()),
        "total_downloads": int(downloads.with_entities(func.coalesce(func.sum(Download.download_count), 0)).scalar()),
    }
