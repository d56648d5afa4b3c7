"""
Role/permission catalogue and the authorization decision.

Roles and permissions are a closed set. They are also persisted (``roles``,
``permissions`` and the two association tables) so users can be joined to
them, but the rows are always seeded from ``ROLE_PERMISSIONS`` below.
"""
import logging
from enum import Enum

from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.user import Permission, Role, User

logger = logging.getLogger(__name__)


class PermissionName(str, Enum):
    VIEW_POSTS = "view-posts"
    CREATE_POSTS = "create-posts"
    EDIT_POSTS = "edit-posts"
    DELETE_POSTS = "delete-posts"
    PUBLISH_POSTS = "publish-posts"

    VIEW_PROJECTS = "view-projects"
    CREATE_PROJECTS = "create-projects"
    EDIT_PROJECTS = "edit-projects"
    DELETE_PROJECTS = "delete-projects"
    PUBLISH_PROJECTS = "publish-projects"

    VIEW_DOWNLOADS = "view-downloads"
    CREATE_DOWNLOADS = "create-downloads"
    EDIT_DOWNLOADS = "edit-downloads"
    DELETE_DOWNLOADS = "delete-downloads"
    PUBLISH_DOWNLOADS = "publish-downloads"

    VIEW_CONTACTS = "view-contacts"
    REPLY_CONTACTS = "reply-contacts"
    DELETE_CONTACTS = "delete-contacts"
    MANAGE_CONTACTS = "manage-contacts"

    VIEW_USERS = "view-users"
    CREATE_USERS = "create-users"
    EDIT_USERS = "edit-users"
    DELETE_USERS = "delete-users"
    MANAGE_ROLES = "manage-roles"

    VIEW_DASHBOARD = "view-dashboard"
    MANAGE_SETTINGS = "manage-settings"
    VIEW_ANALYTICS = "view-analytics"


class RoleName(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    AUTHOR = "author"
    VIEWER = "viewer"


P = PermissionName

ROLE_PERMISSIONS: dict[RoleName, frozenset[PermissionName]] = {
    RoleName.ADMIN: frozenset(PermissionName),
    RoleName.EDITOR: frozenset({
        P.VIEW_POSTS, P.CREATE_POSTS, P.EDIT_POSTS, P.PUBLISH_POSTS,
        P.VIEW_PROJECTS, P.CREATE_PROJECTS, P.EDIT_PROJECTS, P.PUBLISH_PROJECTS,
        P.VIEW_DOWNLOADS, P.CREATE_DOWNLOADS, P.EDIT_DOWNLOADS, P.PUBLISH_DOWNLOADS,
        P.VIEW_CONTACTS, P.REPLY_CONTACTS,
        P.VIEW_DASHBOARD, P.VIEW_ANALYTICS,
    }),
    RoleName.AUTHOR: frozenset({
        P.VIEW_POSTS, P.CREATE_POSTS, P.EDIT_POSTS,
        P.VIEW_PROJECTS, P.CREATE_PROJECTS, P.EDIT_PROJECTS,
        P.VIEW_DOWNLOADS, P.CREATE_DOWNLOADS, P.EDIT_DOWNLOADS,
        P.VIEW_DASHBOARD,
    }),
    RoleName.VIEWER: frozenset({
        P.VIEW_POSTS, P.VIEW_PROJECTS, P.VIEW_DOWNLOADS, P.VIEW_DASHBOARD,
    }),
}

_CATALOGUE = {p.value for p in PermissionName}
_ROLES = {r.value for r in RoleName}


def seed_roles(db: Session) -> None:
    """Create missing permission and role rows and align role grants."""
    existing = {p.name: p for p in db.query(Permission).all()}
    for perm in PermissionName:
        if perm.value not in existing:
            existing[perm.value] = Permission(name=perm.value)
            db.add(existing[perm.value])

    roles = {r.name: r for r in db.query(Role).all()}
    for role_name, grants in ROLE_PERMISSIONS.items():
        role = roles.get(role_name.value)
        if role is None:
            role = Role(name=role_name.value)
            db.add(role)
        role.permissions = [existing[p.value] for p in sorted(grants, key=lambda p: p.value)]
    db.commit()
    logger.info("Seeded %d roles and %d permissions", len(ROLE_PERMISSIONS), len(existing))


def permissions_for(user: User | None) -> set[str]:
    if user is None:
        return set()
    return {p.name for role in user.roles for p in role.permissions}


def has_permission(user: User | None, permission: PermissionName | str) -> bool:
    name = permission.value if isinstance(permission, PermissionName) else permission
    if name not in _CATALOGUE:
        return False
    return name in permissions_for(user)


def has_role(user: User | None, *roles: RoleName | str) -> bool:
    if user is None:
        return False
    attached = {r.name for r in user.roles}
    wanted = {r.value if isinstance(r, RoleName) else r for r in roles}
    return bool(attached & wanted)


def get_roles(db: Session, names) -> list[Role]:
    wanted = [n.value if isinstance(n, RoleName) else n for n in names]
    unknown = [n for n in wanted if n not in _ROLES]
    if unknown:
        raise ValidationError.field("role", f"Unknown role: {', '.join(unknown)}")
    found = db.query(Role).filter(Role.name.in_(wanted)).all()
    if len(found) != len(set(wanted)):
        raise ValidationError.field("role", "Role catalogue is not seeded")
    return found


def sync_roles(db: Session, user: User, names) -> None:
    """Replace the user's whole role set. The caller commits."""
    user.roles = get_roles(db, names)
    logger.info("User %s roles set to %s", user.id, user.role_names)
