"""
Request correlation ids.

Every request gets an ``X-Request-ID`` (taken from the client when a
terminal sends one, generated otherwise). The id is bound to a ContextVar
so log lines written while serving the request carry it.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

MAX_REQUEST_ID_LENGTH = 64


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the lifetime of each request and echo it back."""

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.HEADER_NAME, "")[:MAX_REQUEST_ID_LENGTH]
        if not request_id:
            request_id = str(uuid.uuid4())

        token = request_id_var.set(request_id)
        try:
            request.state.request_id = request_id
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_var.reset(token)


class CorrelationIdFilter(logging.Filter):
    """
    Logging filter that adds request_id to log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True
