"""Response hardening for a JSON-only API.

No response is meant for display in a browser, so every response carries
a deny-all content policy. Contact submissions hold personal data and are
never stored by intermediaries. The interactive docs pages load their own
scripts and are left without the content policy.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

API_CONTENT_SECURITY_POLICY = "default-src 'none'; frame-ancestors 'none'"
DOCS_PATHS = ("/docs", "/redoc")
HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)

        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["Referrer-Policy"] = "no-referrer"
        headers["Cross-Origin-Resource-Policy"] = "cross-origin"

        if not request.url.path.startswith(DOCS_PATHS):
            headers["Content-Security-Policy"] = API_CONTENT_SECURITY_POLICY
            headers["Cache-Control"] = "no-store"

        if request.url.scheme == "https":
            headers["Strict-Transport-Security"] = HSTS_VALUE

        return response
