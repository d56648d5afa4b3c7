from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from app.auth.deps import get_db, require_role, storage
from app.auth.permissions import RoleName
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.user import UserCreate, UserUpdate
from app.storage.local import LocalStorage
from app.users import service
from app.utils.payloads import serialize, serialize_many, validate
from app.utils.responses import envelope

router = APIRouter(tags=["users"])
admin_only = require_role(RoleName.ADMIN)


@router.get("/users")
def list_users(
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int = 15,
    db: Session = Depends(get_db),
    admin: User = Depends(admin_only),
):
    items, meta = service.list_users(
        db, search=search, role=role, status=status,
        sort_by=sort_by, sort_order=sort_order, page=page, per_page=per_page,
    )
    return envelope(serialize_many(UserOut, items), meta=meta)


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    password_confirmation: str | None = Form(None),
    role: str = Form(...),
    is_active: bool = Form(True),
    bio: str | None = Form(None),
    phone: str | None = Form(None),
    website: str | None = Form(None),
    location: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    admin: User = Depends(admin_only),
):
    body = validate(UserCreate, {
        "name": name, "email": email, "password": password,
        "password_confirmation": password_confirmation, "role": role, "is_active": is_active,
        "bio": bio, "phone": phone, "website": website, "location": location,
    })
    user = service.create_user(db, files, body, avatar)
    return envelope(serialize(UserOut, user), "User created")


@router.get("/users-roles")
def roles(db: Session = Depends(get_db), admin: User = Depends(admin_only)):
    return envelope(service.list_roles(db))


@router.get("/users-stats")
def stats(db: Session = Depends(get_db), admin: User = Depends(admin_only)):
    return envelope(service.get_stats(db))


@router.get("/users/{user_id}")
def show_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_only)):
    user = service.get_user(db, user_id)
    return envelope({"user": serialize(UserOut, user), "stats": service.user_stats(db, user)})


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    name: str = Form(...),
    email: str = Form(...),
    role: str = Form(...),
    password: str | None = Form(None),
    password_confirmation: str | None = Form(None),
    is_active: bool | None = Form(None),
    bio: str | None = Form(None),
    phone: str | None = Form(None),
    website: str | None = Form(None),
    location: str | None = Form(None),
    avatar: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    admin: User = Depends(admin_only),
):
    user = service.get_user(db, user_id)
    body = validate(UserUpdate, {
        "name": name, "email": email, "role": role, "password": password,
        "password_confirmation": password_confirmation, "is_active": is_active,
        "bio": bio, "phone": phone, "website": website, "location": location,
    })
    user = service.update_user(db, files, admin, user, body, avatar)
    return envelope(serialize(UserOut, user), "User updated")


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    files: LocalStorage = Depends(storage),
    admin: User = Depends(admin_only),
):
    user = service.get_user(db, user_id)
    service.delete_user(db, files, admin, user)
    return envelope(message="User deleted")


@router.patch("/users/{user_id}/toggle-status")
def toggle_status(user_id: int, db: Session = Depends(get_db), admin: User = Depends(admin_only)):
    user = service.toggle_status(db, admin, service.get_user(db, user_id))
    state = "activated" if user.is_active else "deactivated"
    return envelope(serialize(UserOut, user), f"User {state}")
