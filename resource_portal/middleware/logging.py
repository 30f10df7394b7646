from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from resource_portal.core.config import settings
from resource_portal.request_context import IDENTITY_EMAIL_HEADER, client_ip

logger = logging.getLogger("portal.request")

QUIET_PATHS = frozenset({"/health"})


def completion_level(path: str, status_code: int, duration_ms: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400 or duration_ms >= settings.slow_request_ms:
        return logging.WARNING
    if path in QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": client_ip(request),
            "user_email": request.headers.get(IDENTITY_EMAIL_HEADER),
        }
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_failed",
                extra={
                    **fields,
                    "request_id": getattr(request.state, "request_id", None),
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                },
            )
            raise
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.log(
            completion_level(request.url.path, response.status_code, duration_ms),
            "request_completed",
            extra={
                **fields,
                "request_id": getattr(request.state, "request_id", None),
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response
