"""
Security middleware for FastAPI:
- Security headers (HSTS, X-Frame-Options, nosniff, etc.)
- No-store caching on token-bearing OAuth2 responses
- Request logging for the OAuth2 and scheduler endpoints
"""

import time

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

OAUTH2_PREFIX = "/public/oauth"
LOGGED_PREFIXES = (OAUTH2_PREFIX, "/scheduler")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Headers added:
    - Strict-Transport-Security (HSTS)
    - X-Frame-Options
    - X-Content-Type-Options
    - Referrer-Policy
    - Cache-Control / Pragma (OAuth2 responses only)
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Tokens and authorization codes must never be cached
        if request.url.path.startswith(OAUTH2_PREFIX):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"

        return response


class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """Log OAuth2 and scheduler requests with their outcome"""

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(LOGGED_PREFIXES):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        message = (
            f"[HTTP] {request.method} {request.url.path} from {client_ip} "
            f"-> {response.status_code} ({elapsed_ms:.0f}ms)"
        )
        if response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)

        return response
