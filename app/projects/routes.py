from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.auth.deps import get_db, require_permission, storage
from app.auth.permissions import PermissionName as P
from app.models.user import User
from app.projects import service
from app.schemas.common import ProjectBulkIn
from app.schemas.project import ProjectIn, ProjectOut
from app.storage.local import LocalStorage
from app.utils.payloads import serialize, serialize_many, validate
from app.utils.responses import envelope

router = APIRouter(tags=["projects"])


def _project_form(
    title: str = Form(...),
    slug: str | None = Form(None),
    description: str = Form(...),
    full_description: str | None = Form(None),
    client: str | None = Form(None),
    category: str = Form(...),
    technologies: list[str] = Form([]),
    project_url: str | None = Form(None),
    repository_url: str | None = Form(None),
    gallery: list[str] = Form([]),
    start_date: str | None = Form(None),
    end_date: str | None = Form(None),
    project_status: str | None = Form(None, alias="status"),
    is_featured: bool | None = Form(None),
    is_published: bool | None = Form(None),
) -> ProjectIn:
    return validate(ProjectIn, {
        "title": title, "slug": slug, "description": description,
        "full_description": full_description, "client": client, "category": category,
        "technologies": [t for t in technologies if t], "project_url": project_url,
        "repository_url": repository_url, "gallery": [g for g in gallery if g],
        "start_date": start_date, "end_date": end_date, "status": project_status,
        "is_featured": is_featured, "is_published": is_published,
    })


@router.get("/projects")
def list_projects(
    search: str | None = None,
    category: str | None = None,
    status: str | None = None,
    project_status: str | None = None,
    featured: bool | None = None,
    technologies: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 15,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(P.VIEW_PROJECTS)),
):
    items, meta = service.list_projects(
        db, search=search, category=category, status=status, project_status=project_status,
        featured=featured, technologies=technologies, sort_by=sort_by, sort_order=sort_order,
        page=page, per_page=per_page,
    )
    return envelope(serialize_many(ProjectOut, items), meta=meta)


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectIn = Depends(_project_form),
    featured_image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.CREATE_PROJECTS)),
):
    project = service.create_project(db, files, user, body, featured_image)
    return envelope(serialize(ProjectOut, project), "Project created")


@router.get("/projects-stats")
def stats(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_PROJECTS))):
    return envelope(service.get_stats(db))


@router.get("/projects-categories")
def categories(db: Session = Depends(get_db), user: User = Depends(require_permission(P.VIEW_PROJECTS))):
    return envelope(service.get_categories(db))


@router.post("/projects/bulk-action")
def bulk_action(
    body: ProjectBulkIn,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.EDIT_PROJECTS)),
):
    message = service.bulk_action(db, files, user, body.action, body.project_ids)
    return envelope(message=message)


@router.get("/projects/{key}")
def show_project(key: str, db: Session = Depends(get_db),
                 user: User = Depends(require_permission(P.VIEW_PROJECTS))):
    return envelope(serialize(ProjectOut, service.show_project(db, key)))


@router.put("/projects/{key}")
def update_project(
    key: str,
    body: ProjectIn = Depends(_project_form),
    featured_image: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.EDIT_PROJECTS)),
):
    project = service.update_project(db, files, user, service.get_project(db, key), body, featured_image)
    return envelope(serialize(ProjectOut, project), "Project updated")


@router.delete("/projects/{key}")
def delete_project(
    key: str,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    user: User = Depends(require_permission(P.DELETE_PROJECTS)),
):
    service.delete_project(db, files, user, service.get_project(db, key))
    return envelope(message="Project deleted")


@router.patch("/projects/{key}/toggle-published")
def toggle_published(key: str, db: Session = Depends(get_db),
                     user: User = Depends(require_permission(P.PUBLISH_PROJECTS))):
    project = service.toggle_published(db, service.get_project(db, key))
    state = "published" if project.is_published else "unpublished"
    return envelope(serialize(ProjectOut, project), f"Project {state}")


@router.patch("/projects/{key}/toggle-featured")
def toggle_featured(key: str, db: Session = Depends(get_db),
                    user: User = Depends(require_permission(P.EDIT_PROJECTS))):
    project = service.toggle_featured(db, service.get_project(db, key))
    state = "featured" if project.is_featured else "unfeatured"
    return envelope(serialize(ProjectOut, project), f"Project {state}")
