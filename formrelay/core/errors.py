"""
=============================================================================
FORMRELAY - ERROR HANDLING MODULE
=============================================================================
Rejection kinds for the contact pipeline and the global exception handler.

Features:
- Closed set of rejection kinds, each with its HTTP status
- Per-kind flag telling whether the message is safe to show to the client
- Catch-all handler that logs the traceback and answers a generic 500

Usage:
    # In main.py
    from formrelay.core.errors import register_exception_handlers
    register_exception_handlers(app)
=============================================================================
"""

import logging
import traceback
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from formrelay.core.config import settings

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"
INTERNAL_ERROR_DETAILS = "An unexpected error occurred"


class ErrorKind(str, Enum):
    METHOD_NOT_ALLOWED = "method_not_allowed"
    RATE_LIMITED = "rate_limited"
    FORBIDDEN_ORIGIN = "forbidden_origin"
    VALIDATION_FAILED = "validation_failed"
    SUSPICIOUS_CONTENT = "suspicious_content"
    TRANSPORT_FAILURE = "transport_failure"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def expose_message(self) -> bool:
        """Whether the rejection message may be returned to the client as-is."""
        return self is not ErrorKind.INTERNAL_ERROR


_STATUS_CODES = {
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.FORBIDDEN_ORIGIN: 403,
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.SUSPICIOUS_CONTENT: 400,
    ErrorKind.TRANSPORT_FAILURE: 500,
    ErrorKind.INTERNAL_ERROR: 500,
}


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all handler for exceptions escaping a route.

        - Logs the full traceback for debugging
        - Returns a generic error message to prevent info leakage
        - In debug mode, includes the exception type
        """
        logger.error(
            "Unhandled exception on %s %s:\n%s",
            request.method,
            request.url.path,
            traceback.format_exc(),
        )

        content = {
            "success": False,
            "error": INTERNAL_ERROR_MESSAGE,
            "details": INTERNAL_ERROR_DETAILS,
        }
        if settings.DEBUG:
            content["error_type"] = type(exc).__name__

        return JSONResponse(status_code=500, content=content)
