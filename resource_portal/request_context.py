from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

from fastapi import Request

from resource_portal.core.config import settings

REQUEST_ID_HEADER = "X-Request-ID"
FORWARDED_FOR_HEADER = "X-Forwarded-For"
IDENTITY_EMAIL_HEADER = "x-user-email"

_REQUEST_ID_PATTERN = re.compile(r"[^A-Za-z0-9._:-]")
MAX_REQUEST_ID_LENGTH = 64


def normalize_request_id(incoming: str | None) -> str:
    """Keep a caller's trace id when it is printable, otherwise mint one."""
    cleaned = _REQUEST_ID_PATTERN.sub("", (incoming or "").strip())[:MAX_REQUEST_ID_LENGTH]
    return cleaned or uuid.uuid4().hex


def client_ip(request: Request) -> str | None:
    if settings.trust_forwarded_for:
        first_hop = request.headers.get(FORWARDED_FOR_HEADER, "").split(",")[0].strip()
        if first_hop:
            return first_hop[:64]
    return request.client.host if request.client else None


@dataclass(frozen=True)
class RequestContext:
    """Where a write came from; copied onto every audit row."""

    request_id: str
    ip: str | None = None
    user_agent: str | None = None
    identity_email: str | None = None

    @classmethod
    def for_script(cls, name: str) -> "RequestContext":
        return cls(request_id=f"script:{name}", user_agent=name)


def get_request_context(request: Request) -> RequestContext:
    request_id = getattr(request.state, "request_id", None) or normalize_request_id(
        request.headers.get(REQUEST_ID_HEADER)
    )
    identity = (request.headers.get(IDENTITY_EMAIL_HEADER) or "").strip().lower() or None
    return RequestContext(
        request_id=request_id,
        ip=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        identity_email=identity,
    )
