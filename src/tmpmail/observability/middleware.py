"""FastAPI middleware for observability.

Assigns each HTTP request a correlation id and logs its outcome. Probe
endpoints polled by orchestrators are logged at DEBUG to keep them out of
the normal log stream.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .request_id import generate_request_id, set_request_id

logger = get_logger(__name__)

PROBE_PATHS = frozenset({"/health", "/ready", "/metrics"})


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuse the caller's X-Request-ID or generate one, echo it back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        log = logger.debug if request.url.path in PROBE_PATHS else logger.info

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"{request.method} {request.url.path} failed",
                extra={"duration_ms": round((time.perf_counter() - start) * 1000, 2)},
                exc_info=True,
            )
            raise

        log(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response
