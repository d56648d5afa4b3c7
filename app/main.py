import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from app.middleware.access_log import access_log_middleware
from app.config import settings
from app.db.session import init_db
from app.errors import setup_exception_handlers
from app.storage.local import get_storage
from app.auth.routes import router as auth_router
from app.users.routes import router as users_router
from app.posts.routes import router as posts_router
from app.downloads.routes import router as downloads_router
from app.projects.routes import router as projects_router
from app.contacts.routes import router as contacts_router

def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=settings.app_name)

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(access_log_middleware)
    setup_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(posts_router)
    app.include_router(downloads_router)
    app.include_router(projects_router)
    app.include_router(contacts_router)

    storage_root = get_storage().root
    storage_root.mkdir(parents=True, exist_ok=True)
    app.mount("/storage", StaticFiles(directory=str(storage_root)), name="storage")

    @app.on_event("startup")
    def on_startup():
        init_db()

    @app.get("/", tags=["root"])
    def root():
        return {"name": settings.app_name, "env": settings.app_env}

    return app

app = create_app()
