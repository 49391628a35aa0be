"""
Response hardening for the VisitingVet API.

Every response is JSON (or a CSV/redirect), so the CSP denies everything except
framing by the web app. HSTS is only sent in production where TLS terminates in front of us.
"""

import logging
from typing import Callable, Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import FRONTEND_URL, IS_PRODUCTION

logger = logging.getLogger(__name__)

DISABLED_BROWSER_FEATURES = ("camera", "microphone", "geolocation", "payment", "usb", "accelerometer", "magnetometer")


def build_security_headers(production: bool = IS_PRODUCTION, frontend_url: str = FRONTEND_URL) -> dict[str, str]:
    csp = "; ".join(
        (
            "default-src 'none'",
            f"frame-ancestors 'self' {frontend_url}",
            "img-src 'self' data:",
            "base-uri 'none'",
            "form-action 'self'",
        )
    )
    headers = {
        "Content-Security-Policy": csp,
        "X-Frame-Options": "SAMEORIGIN",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": ", ".join(f"{feature}=()" for feature in DISABLED_BROWSER_FEATURES),
        "Cross-Origin-Opener-Policy": "same-origin",
        "X-Permitted-Cross-Domain-Policies": "none",
    }
    if production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp the security headers on every response outside `exclude_paths`"""

    def __init__(self, app, exclude_paths: Optional[Iterable[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or ())
        self.headers = build_security_headers()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if self.exclude_paths and request.url.path.startswith(self.exclude_paths):
            return response

        response.headers.update(self.headers)
        # Records and signed document links must not sit in shared caches
        response.headers.setdefault("Cache-Control", "no-store")
        return response
