"""
Security Headers Middleware for FastAPI

Adds security headers to every JSON response. Embedded Zoho Sign pages are
framed by the portal front end, not by this API, so the API denies framing.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import config

logger = logging.getLogger(__name__)

API_CSP_POLICY = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"

PERMISSIONS_POLICY = ", ".join(
    [
        "accelerometer=()",
        "camera=()",
        "geolocation=()",
        "microphone=()",
        "payment=()",
        "usb=()",
    ]
)


def get_security_headers() -> dict[str, str]:
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": API_CSP_POLICY,
        "Permissions-Policy": PERMISSIONS_POLICY,
        "X-Permitted-Cross-Domain-Policies": "none",
    }
    if config.IS_PRODUCTION:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds get_security_headers() plus Cache-Control: no-store to responses"""

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        for name, value in get_security_headers().items():
            response.headers[name] = value

        # Presigned URLs and profile data must not be cached by intermediaries
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        return response
