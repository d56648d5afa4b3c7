from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.auth.deps import get_db, get_optional_user, require_permission, storage
from app.auth.permissions import PermissionName as P
from app.downloads import service
from app.models.user import User
from app.schemas.common import DownloadBulkIn
from app.schemas.download import DownloadIn, DownloadOut
from app.storage.local import LocalStorage
from app.utils.payloads import serialize, serialize_many, validate
from app.utils.responses import envelope

router = APIRouter(tags=["downloads"])


def _download_form(
    title: str = Form(...),
    slug: str | None = Form(None),
    description: str | None = Form(None),
    category: str = Form(...),
    tags: list[str] = Form([]),
    author: str = Form(...),
    version: str | None = Form(None),
    is_featured: bool | None = Form(None),
    is_published: bool | None = Form(None),
    requires_registration: bool | None = Form(None),
) -> DownloadIn:
    return validate(DownloadIn, {
        "title": title, "slug": slug, "description": description, "category": category,
        "tags": [t for t in tags if t], "author": author, "version": version,
        "is_featured": is_featured, "is_published": is_published,
        "requires_registration": requires_registration,
    })


@router.get("/downloads")
def list_downloads(
    search: str | None = None,
    category: str | None = None,
    file_type: str | None = None,
    author: str | None = None,
    status: str | None = None,
    featured: bool | None = None,
    requires_registration: bool | None = None,
    tags: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 15,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(P.VIEW_DOWNLOADS)),
):
    items, meta = service.list_downloads(
        db, search=search, category=category, file_type=file_type, author=author, status=status,
        featured=featured, requires_registration=requires_registration, tags=tags,
        sort_by=sort_by, sort_order=sort_order, page=page, per_page=per_page,
    )
    return envelope(serialize_many(DownloadOut, items), meta=meta)


@router.post("/downloads", status_code=status.HTTP_201_CREATED)
def create_download(
    body: DownloadIn = Depends(_download_form),
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.CREATE_DOWNLOADS)),
):
    download = service.create_download(db, files, user, body, file)
    return envelope(serialize(DownloadOut, download), "Download created")


@router.get("/downloads-stats")
def stats(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_DOWNLOADS))):
    return envelope(service.get_stats(db))


@router.get("/downloads-categories")
def categories(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_DOWNLOADS))):
    return envelope(service.get_categories(db))


@router.post("/downloads/bulk-action")
def bulk_action(
    body: DownloadBulkIn,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.EDIT_DOWNLOADS)),
):
    message = service.bulk_action(db, files, user, body.action, body.download_ids)
    return envelope(message=message)


@router.get("/downloads/{key}/download")
def download_file(
    key: str,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User | None = Depends(get_optional_user),
):
    download, path = service.fetch_file(db, files, user, key)
    return FileResponse(path, filename=download.file_name, media_type=download.mime_type)


@router.get("/downloads/{key}")
def show_download(key: str, db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_DOWNLOADS))):
    return envelope(serialize(DownloadOut, service.get_download(db, key)))


@router.put("/downloads/{key}")
def update_download(
    key: str,
    body: DownloadIn = Depends(_download_form),
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.EDIT_DOWNLOADS)),
):
    download = service.update_download(db, files, user, service.get_download(db, key), body, file)
    return envelope(serialize(DownloadOut, download), "Download updated")


@router.delete("/downloads/{key}")
def delete_download(
    key: str,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.DELETE_DOWNLOADS)),
):
    service.delete_download(db, files, user, service.get_download(db, key))
    return envelope(message="Download deleted")


@router.patch("/downloads/{key}/toggle-published")
def toggle_published(key: str, db: Session = Depends(get_db),
                     user: User = Depends(require_permission(P.PUBLISH_DOWNLOADS))):
    download = service.toggle_published(db, service.get_download(db, key))
    state = "published" if download.is_published else "unpublished"
    return envelope(serialize(DownloadOut, download), f"Download {state}")


@router.patch("/downloads/{key}/toggle-featured")
def toggle_featured(key: str, db: Session = Depends(get_db),
                    user: User = Depends(require_permission(P.EDIT_DOWNLOADS))):
    download = service.toggle_featured(db, service.get_download(db, key))
    state = "featured" if download.is_featured else "unfeatured"
    return envelope(serialize(DownloadOut, download), f"Download {state}")
