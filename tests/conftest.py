import itertools
import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="content-storage-")
os.environ["ADMIN_EMAIL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.auth.deps import get_db, storage
from app.auth.permissions import RoleName, sync_roles
from app.auth.tokens import issue_token
from app.db.session import Base, SessionLocal, init_db
from app.main import app
from app.models.user import User
from app.storage.local import LocalStorage
from app.utils.security import hash_password

PASSWORD = "secret123"
_ids = itertools.count(1)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = SessionLocal(bind=engine)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def files(tmp_path):
    return LocalStorage(str(tmp_path / "public"), "http://testserver")


@pytest.fixture()
def client(engine, files):
    def override_get_db():
        session = SessionLocal(bind=engine)
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[storage] = lambda: files
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    def _make(role: RoleName | None = RoleName.VIEWER, name: str | None = None, email: str | None = None,
              is_active: bool = True) -> User:
        n = next(_ids)
        user = User(
            name=name or f"User {n}",
            email=email or f"user{n}@example.com",
            password_hash=hash_password(PASSWORD),
            is_active=is_active,
        )
        db.add(user)
        db.flush()
        sync_roles(db, user, [role] if role else [])
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture()
def headers_for(db):
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_token(db, user)}"}
    return _headers


@pytest.fixture()
def admin(make_user):
    return make_user(RoleName.ADMIN, name="Ada Admin")


@pytest.fixture()
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture()
def editor_headers(make_user, headers_for):
    return headers_for(make_user(RoleName.EDITOR))


@pytest.fixture()
def author_headers(make_user, headers_for):
    return headers_for(make_user(RoleName.AUTHOR))


@pytest.fixture()
def viewer_headers(make_user, headers_for):
    return headers_for(make_user(RoleName.VIEWER))
