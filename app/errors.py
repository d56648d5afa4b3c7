"""
Error taxonomy shared by every service.

Services raise these; the handlers registered in ``app.main`` turn them into
the ``{success, message, errors}`` envelope with the matching status code.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def payload(self) -> dict:
        return {"success": False, "message": self.message}


class ValidationError(AppError):
    status_code = 422
    default_message = "Invalid data"

    def __init__(self, errors: dict[str, list[str]] | None = None, message: str | None = None):
        super().__init__(message)
        self.errors = errors or {}

    @classmethod
    def field(cls, name: str, msg: str) -> "ValidationError":
        return cls({name: [msg]})

    def payload(self) -> dict:
        return {"success": False, "message": self.message, "errors": self.errors}


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthenticated"

    def __init__(self, message: str | None = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class RateLimitError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests"


class StorageError(AppError):
    default_message = "Storage failure"


def pydantic_errors_to_map(errors) -> dict[str, list[str]]:
    """Collapse pydantic error dicts into ``{field: [messages]}``."""
    out: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "form")]
        key = ".".join(loc) or "__root__"
        out.setdefault(key, []).append(err.get("msg", "Invalid value"))
    return out


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload(), headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "Invalid data",
            "errors": pydantic_errors_to_map(exc.errors()),
        },
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": str(exc) or "Unexpected error"},
    )


def setup_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
