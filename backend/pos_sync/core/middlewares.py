"""
Security middlewares for the FastAPI application.
Implements security headers and content-type validation.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config.settings import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    The API only serves JSON, so the content security policy forbids
    everything.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers.pop("server", None)

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class ContentTypeValidationMiddleware(BaseHTTPMiddleware):
    """
    Reject request bodies that are not JSON with 415.
    """

    METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.METHODS_WITH_BODY:
            content_type = request.headers.get("content-type", "")
            if content_type and not content_type.startswith("application/json"):
                return JSONResponse(
                    status_code=415,
                    content={"detail": "Unsupported Media Type. Use application/json"},
                )
        return await call_next(request)


def register_middlewares(app: FastAPI) -> None:
    """
    Register all security middlewares on the FastAPI application.

    Middlewares run in reverse order of registration: content-type
    validation first, then security headers.
    """
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ContentTypeValidationMiddleware)
