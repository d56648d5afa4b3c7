
from fastapi import Request, Depends
from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.auth.permissions import PermissionName, RoleName, has_permission, has_role
from app.auth.tokens import resolve_token
from app.errors import AuthenticationError, AuthorizationError
from app.models.user import User, AccessToken
from app.storage.local import LocalStorage, get_storage


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def _get_token(request: Request) -> str | None:
    auth = request.headers.get("Authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None

def get_current_token(request: Request, db: Session = Depends(get_db)) -> AccessToken:
    token = _get_token(request)
    if not token:
        raise AuthenticationError("Not authenticated")
    user, record = resolve_token(db, token)
    request.state.user_id = user.id
    return record

def get_current_user(token: AccessToken = Depends(get_current_token)) -> User:
    return token.user

def get_optional_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    token = _get_token(request)
    if not token:
        return None
    user, _ = resolve_token(db, token)
    return user

def require_permission(permission: PermissionName):
    def _dep(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user, permission):
            raise AuthorizationError(f"Missing permission: {permission.value}")
        return user
    return _dep

def require_role(role: RoleName):
    def _dep(user: User = Depends(get_current_user)) -> User:
        if not has_role(user, role):
            raise AuthorizationError(f"Role required: {role.value}")
        return user
    return _dep

def storage() -> LocalStorage:
    return get_storage()
