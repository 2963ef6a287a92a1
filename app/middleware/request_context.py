"""Request context middleware: one id per request, carried into every log line.

Concurrent requests share a thread under asyncio, so per-request values
live in ContextVars: each request's task sees its own copy.  A logging
filter on the root logger copies them onto every LogRecord, so any module's
logger.info(...) is attributable to a request (and, once the session has
been validated, to a user) without passing ids around.

The completion line logs the path only.  Query strings on /callback carry
the authorization code and state token and must never reach the logs.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_var: ContextVar[str] = ContextVar("user_id", default="-")

# Client-supplied ids end up in log lines: keep them short and boring.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


class _RequestContextFilter(logging.Filter):
    """Adds request_id and user_id to every record (a formatter cannot add fields)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        record.user_id = user_id_var.get("-")  # type: ignore[attr-defined]
        return True


# Installed on the root logger so every logger inherits it; guarded
# against duplicates on module reload.
root_logger = logging.getLogger()
if not any(isinstance(f, _RequestContextFilter) for f in root_logger.filters):
    root_logger.addFilter(_RequestContextFilter())


def _request_id_from(request: Request) -> str:
    supplied = request.headers.get("x-request-id", "")
    if _REQUEST_ID_RE.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request id, times the request and logs one completion line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = _request_id_from(request)
        request_id_var.set(req_id)
        user_id_var.set("-")

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        return response
