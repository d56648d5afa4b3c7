import logging

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.auth.permissions import PermissionName, has_permission
from app.config import settings
from app.content import common
from app.errors import AuthorizationError
from app.models.project import PROJECT_STATUSES, Project
from app.models.user import User
from app.schemas.project import ProjectIn
from app.storage.local import LocalStorage
from app.utils.payloads import columns

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (Project.title, Project.description, Project.full_description, Project.client)
FLAGS = ("is_featured", "is_published")
DEFAULT_STATUS = "planning"


def list_projects(db: Session, *, search=None, category=None, status=None, project_status=None,
                  featured: bool | None = None, technologies=None, sort_by=None, sort_order=None,
                  page=1, per_page=15):
    query = db.query(Project)
    query = common.apply_search(query, search, SEARCH_FIELDS)
    if category:
        query = query.filter(Project.category == category)
    query = common.apply_status(query, Project, status)
    if project_status:
        query = query.filter(Project.status == project_status)
    if featured is not None:
        query = query.filter(Project.is_featured.is_(featured))
    query = common.apply_tags(query, Project.technologies, technologies)
    query = common.apply_sort(query, Project, sort_by, sort_order)
    items, meta = common.paginate(query, page, per_page)
    meta.update({
        "total_projects": db.query(Project).count(),
        "published_projects": db.query(Project).filter(Project.is_published.is_(True)).count(),
        "draft_projects": db.query(Project).filter(Project.is_published.is_(False)).count(),
        "featured_projects": db.query(Project).filter(Project.is_featured.is_(True)).count(),
        "categories": common.distinct_values(db, Project.category),
    })
    return items, meta


def _store_image(storage: LocalStorage, image: UploadFile | None):
    if image is None or not image.filename:
        return None
    return storage.store("projects", image, field="featured_image", max_mb=settings.max_image_mb, images_only=True)


def create_project(db: Session, storage: LocalStorage, actor: User, body: ProjectIn,
                   image: UploadFile | None = None) -> Project:
    slug = common.resolve_slug(body.title, body.slug)
    common.ensure_unique(db, Project, {"title": body.title, "slug": slug})

    project = Project(**columns(body, exclude={"slug", "status", *FLAGS}), slug=slug, views_count=0,
                      status=body.status or DEFAULT_STATUS)
    for flag in FLAGS:
        setattr(project, flag, bool(getattr(body, flag)))

    stored = _store_image(storage, image)
    if stored:
        project.featured_image_path = stored.path
        project.featured_image = storage.url(stored.path)

    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("Project %s created by user %s", project.id, actor.id)
    return project


def get_project(db: Session, key) -> Project:
    return common.find_by_key(db, Project, key, "Project")


def show_project(db: Session, key) -> Project:
    project = get_project(db, key)
    if project.is_published:
        db.query(Project).filter(Project.id == project.id).update(
            {Project.views_count: Project.views_count + 1}, synchronize_session=False
        )
        db.commit()
        db.refresh(project)
    return project


def update_project(db: Session, storage: LocalStorage, actor: User, project: Project, body: ProjectIn,
                   image: UploadFile | None = None) -> Project:
    slug = common.resolve_slug(body.title, body.slug, current=project)
    common.ensure_unique(db, Project, {"title": body.title, "slug": slug}, exclude_id=project.id)

    for field, value in columns(body, exclude={"slug", "status", *FLAGS}).items():
        setattr(project, field, value)
    project.slug = slug
    if body.status is not None:
        project.status = body.status
    for flag in FLAGS:
        value = getattr(body, flag)
        if value is not None:
            setattr(project, flag, value)

    stored = _store_image(storage, image)
    if stored:
        storage.delete(project.featured_image_path)
        project.featured_image_path = stored.path
        project.featured_image = storage.url(stored.path)

    db.commit()
    db.refresh(project)
    logger.info("Project %s updated by user %s", project.id, actor.id)
    return project


def delete_project(db: Session, storage: LocalStorage, actor: User, project: Project) -> None:
    storage.delete(project.featured_image_path)
    project_id = project.id
    db.delete(project)
    db.commit()
    logger.info("Project %s deleted by user %s", project_id, actor.id)


def toggle_published(db: Session, project: Project) -> Project:
    project.is_published = not project.is_published
    db.commit()
    db.refresh(project)
    return project


def toggle_featured(db: Session, project: Project) -> Project:
    project.is_featured = not project.is_featured
    db.commit()
    db.refresh(project)
    return project


def get_stats(db: Session) -> dict:
    projects = db.query(Project)
    by_status = dict(db.query(Project.status, func.count(Project.id)).group_by(Project.status).all())
    popular = projects.order_by(Project.views_count.desc(), Project.id).limit(5).all()
    return {
        "total_projects": projects.count(),
        "published_projects": projects.filter(Project.is_published.is_(True)).count(),
        "draft_projects": projects.filter(Project.is_published.is_(False)).count(),
        "featured_projects": projects.filter(Project.is_featured.is_(True)).count(),
        "by_status": {s: by_status.get(s, 0) for s in PROJECT_STATUSES},
        "total_views": int(db.query(func.coalesce(func.sum(Project.views_count), 0)).scalar()),
        "recent_projects": common.count_recent(db, Project, 30),
        "popular_projects": [{"id": p.id, "title": p.title, "views_count": p.views_count} for p in popular],
        "categories_count": len(common.distinct_values(db, Project.category)),
    }


def get_categories(db: Session) -> list[dict]:
    return common.category_breakdown(db, Project)


BULK_PERMISSIONS = {
    "publish": PermissionName.PUBLISH_PROJECTS,
    "unpublish": PermissionName.PUBLISH_PROJECTS,
    "feature": PermissionName.EDIT_PROJECTS,
    "unfeature": PermissionName.EDIT_PROJECTS,
    "delete": PermissionName.DELETE_PROJECTS,
}

BULK_MESSAGES = {
    "publish": "published",
    "unpublish": "unpublished",
    "feature": "featured",
    "unfeature": "removed from featured",
    "delete": "deleted",
}


def bulk_action(db: Session, storage: LocalStorage, actor: User, action: str, ids: list[int]) -> str:
    required = BULK_PERMISSIONS[action]
    if not has_permission(actor, required):
        raise AuthorizationError(f"Missing permission: {required.value}")

    projects = common.load_bulk(db, Project, ids, "project_ids")
    for project in projects:
        if action in ("publish", "unpublish"):
            project.is_published = action == "publish"
        elif action in ("feature", "unfeature"):
            project.is_featured = action == "feature"
        elif action == "delete":
            storage.delete(project.featured_image_path)
            db.delete(project)
    db.commit()
    logger.info("Bulk %s on %d project(s) by user %s", action, len(projects), actor.id)
    return f"{len(projects)} project(s) {BULK_MESSAGES[action]}"
