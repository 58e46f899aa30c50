"""
Custom middleware for the application.
"""
import json
import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from email_platform.core.config import Settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."

CONTENT_SECURITY_POLICY = "; ".join([
    "default-src 'self'",
    "style-src 'self' 'unsafe-inline'",
    "script-src 'self'",
    "img-src 'self' data: https:",
    "connect-src 'self'",
    "font-src 'self'",
    "object-src 'none'",
    "media-src 'self'",
    "frame-src 'none'",
])


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers.
    """

    def __init__(self, app, is_production: bool = False):
        super().__init__(app)
        self.is_production = is_production

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        security_headers = {
            "Content-Security-Policy": CONTENT_SECURITY_POLICY,
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
            "X-DNS-Prefetch-Control": "off",
            "Referrer-Policy": "no-referrer",
            "Cross-Origin-Opener-Policy": "same-origin",
            "Cross-Origin-Resource-Policy": "same-origin",
            "Strict-Transport-Security": "max-age=15552000; includeSubDomains" if self.is_production else "",
        }

        for header, value in security_headers.items():
            if value:
                response.headers[header] = value

        return response


class JSONBodyGuardMiddleware(BaseHTTPMiddleware):
    """
    Reject oversized or malformed JSON bodies before any route runs.
    """

    GUARDED_METHODS = {"POST", "PUT", "PATCH"}

    def __init__(self, app, max_body_bytes: int):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.method not in self.GUARDED_METHODS:
            return await call_next(request)

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_bytes:
            return JSONResponse(status_code=413, content={"error": "Request entity too large"})

        if "json" not in request.headers.get("content-type", ""):
            return await call_next(request)

        body = await request.body()
        if len(body) > self.max_body_bytes:
            return JSONResponse(status_code=413, content={"error": "Request entity too large"})

        if body.strip():
            try:
                json.loads(body)
            except ValueError as e:
                logger.error(f"JSON parsing error: {request.method} {request.url.path} {e}")
                return JSONResponse(status_code=400, content={"error": "Invalid JSON in request body"})

        return await call_next(request)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add request context (ID, timing) and log requests.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = request.client.host if request.client else "unknown"

        start_time = time.time()
        logger.info(
            f"{request.method} {request.url.path} "
            f"ID: {request_id} IP: {client_ip} "
            f"User-Agent: {request.headers.get('user-agent', 'unknown')}"
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        current_user = getattr(request.state, "user", None)
        logger.info(
            f"{request.method} {request.url.path} "
            f"Status: {response.status_code} "
            f"Time: {process_time:.3f}s "
            f"Organization: {current_user.organization_id if current_user else '-'} "
            f"ID: {request_id}"
        )
        return response


def create_limiter(settings: Settings) -> Limiter:
    """
    Fixed-window, per-IP limiter applied to every route.
    Counters live in RATE_LIMIT_STORAGE_URI (in-process memory by default).
    """
    return Limiter(
        key_func=get_remote_address,
        application_limits=[settings.rate_limit],
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        headers_enabled=True,
        enabled=settings.RATE_LIMIT_ENABLED,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Must stay synchronous: SlowAPIMiddleware calls it without awaiting."""
    response = JSONResponse(status_code=429, content={"error": RATE_LIMIT_MESSAGE})
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit is not None:
        # private slowapi API, same call as slowapi._rate_limit_exceeded_handler; recheck on upgrade
        response = request.app.state.limiter._inject_headers(response, view_rate_limit)
    return response
