"""
Request correlation for log lines and error responses.

Every HTTP request gets a request id (taken from ``X-Request-ID`` when the
client sends one) and a correlation id (``X-Correlation-ID``, stable across a
client session). Both are stored in context variables so that log records and
problem+json error bodies emitted while the request is handled can carry them.
"""

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def generate_id() -> str:
    """Short random id suitable for log lines."""
    return uuid.uuid4().hex[:12]


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind request/correlation ids to the request and echo them back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or generate_id()
        request_id = request.headers.get("X-Request-ID") or generate_id()

        correlation_token = correlation_id_ctx.set(correlation_id)
        request_token = request_id_ctx.set(request_id)
        request.state.correlation_id = correlation_id
        request.state.request_id = request_id

        started = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.debug("%s %s handled in %.1fms", request.method, request.url.path, elapsed_ms)
            correlation_id_ctx.reset(correlation_token)
            request_id_ctx.reset(request_token)

        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Request-ID"] = request_id
        return response


def get_correlation_id() -> str:
    return correlation_id_ctx.get() or "unknown"


def get_request_id() -> str:
    return request_id_ctx.get() or "unknown"


class CorrelationLogFilter(logging.Filter):
    """Inject ``correlation_id`` and ``request_id`` into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.request_id = get_request_id()
        return True
