"""
Security Headers Middleware

The portal only serves JSON, CSV exports and PDFs, so every response gets a
deny-all CSP and is kept out of search indexes. Public contract signing links
carry a signed token in the URL; those responses never send a referrer and are
never cached. Exports and PDFs keep the Cache-Control they were built with.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import IS_PRODUCTION

logger = logging.getLogger(__name__)

SIGNING_LINK_PREFIX = "/contracts/sign/"

CSP_POLICY = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"

PERMISSIONS_POLICY = ", ".join(
    f"{feature}=()"
    for feature in ("camera", "geolocation", "microphone", "payment", "usb", "interest-cohort")
)


def build_security_headers(path: str, production: bool = IS_PRODUCTION) -> dict[str, str]:
    """Headers for a response to path; Cache-Control is only a default"""
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Content-Security-Policy": CSP_POLICY,
        "Permissions-Policy": PERMISSIONS_POLICY,
        "Cross-Origin-Resource-Policy": "same-site",
        "X-Robots-Tag": "noindex, nofollow",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Cache-Control": "no-store",
    }
    if path.startswith(SIGNING_LINK_PREFIX):
        headers["Referrer-Policy"] = "no-referrer"
        headers["Cache-Control"] = "private, no-store, max-age=0"
    if production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        is_download = "attachment" in response.headers.get("Content-Disposition", "")
        for name, value in build_security_headers(path).items():
            if name == "Cache-Control" and is_download and name in response.headers:
                continue
            response.headers[name] = value

        return response
