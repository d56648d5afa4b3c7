import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from app.config import settings

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    pass

def normalize_url(url: str | None) -> str:
    """Default to a local SQLite file and route Postgres URLs through psycopg 3."""
    url = url or "sqlite:///./app.db"
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+psycopg://", 1)
    return url

url = normalize_url(settings.database_url)

connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}

engine = create_engine(
    url,
    connect_args=connect_args,
    pool_pre_ping=True,
    future=True,
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)

def init_db(bind=None):
    """Create tables, seed the role/permission catalogue and the first admin."""
    from app.models import user, post, download, project, contact  # noqa: F401
    from app.auth.permissions import seed_roles
    from app.users.service import bootstrap_admin

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info("Database ready at %s", bind.url.render_as_string(hide_password=True))

    db = SessionLocal(bind=bind)
    try:
        seed_roles(db)
        bootstrap_admin(db, settings.admin_email, settings.admin_password, settings.admin_name)
    finally:
        db.close()
