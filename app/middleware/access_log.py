import logging
import time

from fastapi import Request

logger = logging.getLogger("app.access")


async def access_log_middleware(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %s in %.1fms (user=%s)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        getattr(request.state, "user_id", None),
    )
    return response
