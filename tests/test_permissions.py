import pytest

from app.auth.permissions import (
    ROLE_PERMISSIONS,
    PermissionName,
    RoleName,
    get_roles,
    has_permission,
    has_role,
    permissions_for,
    seed_roles,
)
from app.errors import ValidationError
from app.models.user import Permission, Role


def test_user_without_roles_is_authorized_for_nothing(make_user):
    user = make_user(role=None)
    assert permissions_for(user) == set()
    assert not any(has_permission(user, p) for p in PermissionName)


def test_admin_holds_every_permission_other_roles_hold(make_user):
    admin = make_user(RoleName.ADMIN)
    granted = permissions_for(admin)
    for role in (RoleName.EDITOR, RoleName.AUTHOR, RoleName.VIEWER):
        assert {p.value for p in ROLE_PERMISSIONS[role]} <= granted
    assert granted == {p.value for p in PermissionName}


def test_unknown_permission_is_denied(make_user):
    admin = make_user(RoleName.ADMIN)
    assert has_permission(admin, "launch-rockets") is False


def test_role_grants_match_catalogue(make_user):
    editor = make_user(RoleName.EDITOR)
    assert has_permission(editor, PermissionName.PUBLISH_POSTS)
    assert not has_permission(editor, PermissionName.DELETE_POSTS)
    assert has_role(editor, RoleName.EDITOR)
    assert not has_role(editor, RoleName.ADMIN)

    author = make_user(RoleName.AUTHOR)
    assert has_permission(author, PermissionName.EDIT_POSTS)
    assert not has_permission(author, PermissionName.PUBLISH_POSTS)


def test_anonymous_has_nothing():
    assert has_permission(None, PermissionName.VIEW_POSTS) is False
    assert has_role(None, RoleName.VIEWER) is False


def test_seed_is_idempotent(db):
    seed_roles(db)
    seed_roles(db)
    assert db.query(Role).count() == len(RoleName)
    assert db.query(Permission).count() == len(PermissionName)


def test_get_roles_rejects_unknown_names(db):
    with pytest.raises(ValidationError) as exc:
        get_roles(db, ["superuser"])
    assert "role" in exc.value.errors
