import logging

from fastapi import UploadFile
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.auth.permissions import PermissionName, has_permission
from app.config import settings
from app.content import common
from app.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from app.models.download import Download
from app.models.user import User
from app.schemas.download import DownloadIn
from app.storage.local import LocalStorage, StoredFile
from app.utils.payloads import columns
from app.utils.responses import format_bytes

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (Download.title, Download.description, Download.file_name)
FLAGS = ("is_featured", "is_published", "requires_registration")


def list_downloads(db: Session, *, search=None, category=None, file_type=None, author=None, status=None,
                   featured: bool | None = None, requires_registration: bool | None = None, tags=None,
                   sort_by=None, sort_order=None, page=1, per_page=15):
    query = db.query(Download)
    query = common.apply_search(query, search, SEARCH_FIELDS)
    if category:
        query = query.filter(Download.category == category)
    if file_type:
        query = query.filter(Download.file_type == file_type)
    if author:
        query = query.filter(Download.author == author)
    query = common.apply_status(query, Download, status)
    if featured is not None:
        query = query.filter(Download.is_featured.is_(featured))
    if requires_registration is not None:
        query = query.filter(Download.requires_registration.is_(requires_registration))
    query = common.apply_tags(query, Download.tags, tags)
    query = common.apply_sort(query, Download, sort_by, sort_order)
    items, meta = common.paginate(query, page, per_page)
    meta.update({
        "total_downloads": db.query(Download).count(),
        "published_downloads": db.query(Download).filter(Download.is_published.is_(True)).count(),
        "draft_downloads": db.query(Download).filter(Download.is_published.is_(False)).count(),
        "featured_downloads": db.query(Download).filter(Download.is_featured.is_(True)).count(),
        "categories": common.distinct_values(db, Download.category),
        "file_types": common.distinct_values(db, Download.file_type),
        "authors": common.distinct_values(db, Download.author),
    })
    return items, meta


def _apply_file(storage: LocalStorage, download: Download, stored: StoredFile) -> None:
    download.file_name = stored.original_name
    download.file_path = stored.path
    download.file_url = storage.url(stored.path)
    download.file_size = stored.size
    download.file_type = stored.extension
    download.mime_type = stored.mime_type


def create_download(db: Session, storage: LocalStorage, actor: User, body: DownloadIn,
                    upload: UploadFile | None) -> Download:
    if upload is None or not upload.filename:
        raise ValidationError.field("file", "A file is required")
    slug = common.resolve_slug(body.title, body.slug)
    common.ensure_unique(db, Download, {"title": body.title, "slug": slug})

    download = Download(**columns(body, exclude={"slug", *FLAGS}), slug=slug, download_count=0)
    for flag in FLAGS:
        setattr(download, flag, bool(getattr(body, flag)))

    stored = storage.store("downloads", upload, max_mb=settings.max_download_mb)
    _apply_file(storage, download, stored)

    db.add(download)
    db.commit()
    db.refresh(download)
    logger.info("Download %s created by user %s", download.id, actor.id)
    return download


def get_download(db: Session, key) -> Download:
    return common.find_by_key(db, Download, key, "Download")


def update_download(db: Session, storage: LocalStorage, actor: User, download: Download, body: DownloadIn,
                    upload: UploadFile | None = None) -> Download:
    slug = common.resolve_slug(body.title, body.slug, current=download)
    common.ensure_unique(db, Download, {"title": body.title, "slug": slug}, exclude_id=download.id)

    for field, value in columns(body, exclude={"slug", *FLAGS}).items():
        setattr(download, field, value)
    download.slug = slug
    for flag in FLAGS:
        value = getattr(body, flag)
        if value is not None:
            setattr(download, flag, value)

    if upload is not None and upload.filename:
        stored = storage.store("downloads", upload, max_mb=settings.max_download_mb)
        storage.delete(download.file_path)
        _apply_file(storage, download, stored)

    db.commit()
    db.refresh(download)
    logger.info("Download %s updated by user %s", download.id, actor.id)
    return download


def delete_download(db: Session, storage: LocalStorage, actor: User, download: Download) -> None:
    storage.delete(download.file_path)
    download_id = download.id
    db.delete(download)
    db.commit()
    logger.info("Download %s deleted by user %s", download_id, actor.id)


def fetch_file(db: Session, storage: LocalStorage, user: User | None, key) -> tuple[Download, str]:
    """Resolve a download for streaming and count it.

    Returns the record and the absolute path of its file.
    """
    download = get_download(db, key)
    if not download.is_published:
        raise AuthorizationError("Download not available")
    if download.requires_registration and user is None:
        raise AuthenticationError("Registration required to download this file")
    if not storage.exists(download.file_path):
        logger.warning("Download %s points at missing file %s", download.id, download.file_path)
        raise NotFoundError("File not found")

    db.query(Download).filter(Download.id == download.id).update(
        {Download.download_count: Download.download_count + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(download)
    return download, str(storage.absolute(download.file_path))


def toggle_published(db: Session, download: Download) -> Download:
    download.is_published = not download.is_published
    db.commit()
    db.refresh(download)
    return download


def toggle_featured(db: Session, download: Download) -> Download:
    download.is_featured = not download.is_featured
    db.commit()
    db.refresh(download)
    return download


def get_stats(db: Session) -> dict:
    downloads = db.query(Download)
    total_size = int(db.query(func.coalesce(func.sum(Download.file_size), 0)).scalar())
    popular = downloads.order_by(Download.download_count.desc(), Download.id).limit(5).all()
    return {
        "total_downloads": downloads.count(),
        "published_downloads": downloads.filter(Download.is_published.is_(True)).count(),
        "draft_downloads": downloads.filter(Download.is_published.is_(False)).count(),
        "featured_downloads": downloads.filter(Download.is_featured.is_(True)).count(),
        "total_download_count": int(db.query(func.coalesce(func.sum(Download.download_count), 0)).scalar()),
        "total_file_size": total_size,
        "formatted_file_size": format_bytes(total_size),
        "recent_downloads": common.count_recent(db, Download, 30),
        "popular_downloads": [
            {"id": d.id, "title": d.title, "download_count": d.download_count} for d in popular
        ],
        "categories_count": len(common.distinct_values(db, Download.category)),
        "file_types_count": len(common.distinct_values(db, Download.file_type)),
        "authors_count": len(common.distinct_values(db, Download.author)),
    }


def get_categories(db: Session) -> list[dict]:
    return common.category_breakdown(db, Download)


BULK_PERMISSIONS = {
    "publish": PermissionName.PUBLISH_DOWNLOADS,
    "unpublish": PermissionName.PUBLISH_DOWNLOADS,
    "feature": PermissionName.EDIT_DOWNLOADS,
    "unfeature": PermissionName.EDIT_DOWNLOADS,
    "delete": PermissionName.DELETE_DOWNLOADS,
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

    downloads = common.load_bulk(db, Download, ids, "download_ids")
    for download in downloads:
        if action == "publish":
            download.is_published = True
        elif action == "unpublish":
            download.is_published = False
        elif action == "feature":
            download.is_featured = True
        elif action == "unfeature":
            download.is_featured = False
        elif action == "delete":
            storage.delete(download.file_path)
            db.delete(download)
    db.commit()
    logger.info("Bulk %s on %d download(s) by user %s", action, len(downloads), actor.id)
    return f"{len(downloads)} download(s) {BULK_MESSAGES[action]}"
