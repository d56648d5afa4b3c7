import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.auth.permissions import RoleName
from app.config import settings
from app.db.session import Base, SessionLocal, init_db
from app.errors import AuthorizationError
from app.models.user import User
from app.users import service


def _form(**overrides):
    data = {
        "name": "Grace Hopper",
        "email": "grace@example.com",
        "password": "password123",
        "password_confirmation": "password123",
        "role": "editor",
    }
    data.update(overrides)
    return data


def test_user_endpoints_are_admin_only(client, editor_headers):
    assert client.get("/users", headers=editor_headers).status_code == 403
    assert client.get("/users").status_code == 401


def test_admin_creates_user_with_role(client, admin_headers):
    res = client.post("/users", data=_form(), headers=admin_headers)
    assert res.status_code == 201
    user = res.json()["data"]
    assert user["roles"] == ["editor"]
    assert user["avatar_url"].startswith("https://www.gravatar.com/avatar/")

    listed = client.get("/users", params={"role": "editor"}, headers=admin_headers).json()
    assert [u["email"] for u in listed["data"]] == ["grace@example.com"]
    assert listed["meta"]["admin_users"] == 1


def test_create_user_rejects_unknown_role(client, admin_headers):
    res = client.post("/users", data=_form(role="overlord"), headers=admin_headers)
    assert res.status_code == 422
    assert "role" in res.json()["errors"]


def test_create_user_with_avatar(client, admin_headers, files):
    res = client.post(
        "/users",
        data=_form(),
        files={"avatar": ("Me Photo.png", b"\x89PNG fake", "image/png")},
        headers=admin_headers,
    )
    assert res.status_code == 201
    avatar = res.json()["data"]["avatar"]
    assert avatar.startswith("avatars/") and avatar.endswith("_me-photo.png")
    assert files.exists(avatar)


def test_update_replaces_role_set(client, admin_headers, make_user):
    user = make_user(RoleName.AUTHOR)
    res = client.put(f"/users/{user.id}", data={"name": user.name, "email": user.email, "role": "viewer"},
                     headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["roles"] == ["viewer"]


def test_cannot_deactivate_yourself(client, admin, admin_headers):
    res = client.patch(f"/users/{admin.id}/toggle-status", headers=admin_headers)
    assert res.status_code == 403


def test_cannot_delete_yourself(client, admin, admin_headers):
    assert client.delete(f"/users/{admin.id}", headers=admin_headers).status_code == 403


def test_deactivating_sole_active_admin_is_rejected(db, files, admin):
    with pytest.raises(AuthorizationError):
        service.toggle_status(db, None, admin)
    db.refresh(admin)
    assert admin.is_active is True


def test_deactivating_another_admin_revokes_their_tokens(client, admin_headers, make_user, headers_for):
    other = make_user(RoleName.ADMIN)
    other_headers = headers_for(other)
    assert client.get("/auth/me", headers=other_headers).status_code == 200

    res = client.patch(f"/users/{other.id}/toggle-status", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["is_active"] is False
    assert client.get("/auth/me", headers=other_headers).status_code == 401


def test_deleting_last_admin_is_rejected_regardless_of_requester(db, files, admin, make_user):
    with pytest.raises(AuthorizationError):
        service.delete_user(db, files, None, admin)
    with pytest.raises(AuthorizationError):
        service.delete_user(db, files, make_user(RoleName.EDITOR), admin)
    assert db.get(User, admin.id) is not None


def test_dropping_admin_role_from_last_admin_is_rejected(client, admin, make_user, headers_for):
    res = client.put(
        f"/users/{admin.id}",
        data={"name": admin.name, "email": admin.email, "role": "editor"},
        headers=headers_for(admin),
    )
    assert res.status_code == 403


def test_admin_deletes_other_user(client, admin_headers, make_user, headers_for):
    user = make_user(RoleName.AUTHOR)
    token = headers_for(user)
    assert client.delete(f"/users/{user.id}", headers=admin_headers).status_code == 200
    assert client.get(f"/users/{user.id}", headers=admin_headers).status_code == 404
    assert client.get("/auth/me", headers=token).status_code == 401


def test_show_user_includes_content_stats(client, admin_headers, make_user):
    user = make_user(RoleName.AUTHOR, name="Post Writer")
    res = client.get(f"/users/{user.id}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["stats"]["posts_count"] == 0


def test_stats_and_roles(client, admin_headers, make_user):
    make_user(RoleName.EDITOR)
    stats = client.get("/users-stats", headers=admin_headers).json()["data"]
    assert stats["admin_users"] == 1
    assert stats["editor_users"] == 1
    roles = client.get("/users-roles", headers=admin_headers).json()["data"]
    assert {r["name"] for r in roles} == {"admin", "editor", "author", "viewer"}


def test_list_cannot_sort_by_password_hash(client, admin_headers):
    res = client.get("/users", params={"sort_by": "password_hash"}, headers=admin_headers)
    assert res.status_code == 422
    assert "sort_by" in res.json()["errors"]
    assert client.get("/users", params={"sort_by": "email", "sort_order": "asc"}, headers=admin_headers).status_code == 200


def test_init_db_creates_first_admin_from_settings(monkeypatch):
    monkeypatch.setattr(settings, "admin_email", "root@example.com")
    monkeypatch.setattr(settings, "admin_password", "changeme123")
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    init_db(bind=engine)

    db = SessionLocal(bind=engine)
    try:
        assert service.count_admins(db, active_only=True) == 1
        admin = db.query(User).filter(User.email == "root@example.com").one()
        assert admin.role_names == ["admin"]
        assert admin.name == settings.admin_name
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def test_bootstrap_admin_skips_when_admin_exists(db, admin):
    assert service.bootstrap_admin(db, "other@example.com", "changeme123") is None
    assert db.query(User).filter(User.email == "other@example.com").first() is None


def test_bootstrap_admin_requires_credentials(db):
    assert service.bootstrap_admin(db, None, None) is None
    assert service.count_admins(db) == 0


def test_bootstrap_admin_promotes_existing_account(db, make_user):
    user = make_user(RoleName.VIEWER, is_active=False)
    promoted = service.bootstrap_admin(db, user.email, "changeme123")
    assert promoted.id == user.id
    assert promoted.is_active is True
    assert promoted.role_names == ["admin"]
