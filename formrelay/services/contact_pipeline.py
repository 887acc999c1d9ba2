"""
Contact submission pipeline.

Gates, in order, each ending the request on failure:
method -> rate limit -> origin -> body parse -> schema -> content threats
-> sanitize -> mail transport.

Every call to ``ContactPipeline.handle`` yields exactly one outcome; nothing
is raised to the caller.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from formrelay.core.config import Settings
from formrelay.core.errors import INTERNAL_ERROR_DETAILS, INTERNAL_ERROR_MESSAGE, ErrorKind
from formrelay.core.rate_limiter import UNKNOWN_IDENTITY, RateLimiter
from formrelay.core.security import detect_suspicious_activity, is_allowed_origin
from formrelay.schemas.contact import Accepted, validate_contact_form
from formrelay.services.contact_service import ContactService, SanitizedContact
from formrelay.services.mail_transport import (
    MailConfigurationError,
    MailTransport,
    TransportError,
)

logger = logging.getLogger(__name__)

SUBMIT_METHOD = "POST"
PREFLIGHT_METHOD = "OPTIONS"

SUCCESS_MESSAGE = "Your message has been sent successfully!"
PREFLIGHT_MESSAGE = "CORS preflight successful"


@dataclass(frozen=True)
class InboundRequest:
    """Platform-neutral view of an HTTP request."""

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    client_ip: Optional[str] = None
    request_id: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class Sent:
    message_id: str
    message: str = SUCCESS_MESSAGE


@dataclass(frozen=True)
class Preflight:
    message: str = PREFLIGHT_MESSAGE


@dataclass(frozen=True)
class Rejected:
    kind: ErrorKind
    message: str
    details: Optional[str] = None

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def public_message(self) -> str:
        return self.message if self.kind.expose_message else INTERNAL_ERROR_MESSAGE

    @property
    def public_details(self) -> Optional[str]:
        return self.details if self.kind.expose_message else INTERNAL_ERROR_DETAILS


PipelineOutcome = Union[Sent, Preflight, Rejected]


class _BodyError(ValueError):
    pass


def parse_body(body: Optional[str]) -> object:
    if not body:
        raise _BodyError("Request body is required")
    try:
        return json.loads(body)
    except (ValueError, RecursionError) as exc:
        raise _BodyError("Invalid JSON in request body") from exc


class ContactPipeline:
    """Runs one contact submission through every check and sends the email."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        transport: MailTransport,
        service: Optional[ContactService] = None,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.transport = transport
        self.service = service or ContactService()

    async def handle(self, request: InboundRequest, settings: Settings) -> PipelineOutcome:
        try:
            outcome = await self._run(request, settings)
        except Exception:
            logger.exception(
                "Contact pipeline failed id=%s",
                request.request_id,
                extra={"outcome": "contact_internal_error", "request_id": request.request_id},
            )
            outcome = Rejected(
                ErrorKind.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE, INTERNAL_ERROR_DETAILS
            )
        self._log_outcome(request, outcome)
        return outcome

    async def _run(self, request: InboundRequest, settings: Settings) -> PipelineOutcome:
        method = request.method.upper()
        if method == PREFLIGHT_METHOD:
            return Preflight()
        if method != SUBMIT_METHOD:
            return Rejected(
                ErrorKind.METHOD_NOT_ALLOWED,
                "Method not allowed",
                "Only POST requests are supported",
            )

        identity = request.client_ip or UNKNOWN_IDENTITY
        if not self.rate_limiter.allow(
            identity,
            settings.RATE_LIMIT_MAX_REQUESTS,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        ):
            return Rejected(ErrorKind.RATE_LIMITED, "Too many requests", "Please try again later")

        if not is_allowed_origin(request.header("Origin"), settings.DOMAIN):
            return Rejected(ErrorKind.FORBIDDEN_ORIGIN, "Forbidden", "Invalid origin")

        try:
            payload = parse_body(request.body)
        except _BodyError as exc:
            return Rejected(ErrorKind.VALIDATION_FAILED, str(exc))

        validation = validate_contact_form(payload)
        if not isinstance(validation, Accepted):
            return Rejected(ErrorKind.VALIDATION_FAILED, validation.summary)
        message = validation.message

        if detect_suspicious_activity(message.content):
            return Rejected(
                ErrorKind.SUSPICIOUS_CONTENT, "Invalid content", "Suspicious content detected"
            )

        contact = SanitizedContact.from_message(message)

        try:
            if not settings.EMAIL:
                raise MailConfigurationError("EMAIL is not configured")
            email = self.service.build_email_message(contact, sender=settings.EMAIL)
            message_id = await self.transport.send(email)
        except TransportError as exc:
            logger.error(
                "Contact delivery failed id=%s reason=%s error=%s",
                request.request_id,
                exc.reason,
                exc,
                exc_info=True,
                extra={
                    "outcome": "contact_transport_failed",
                    "request_id": request.request_id,
                    "reason": exc.reason,
                },
            )
            return Rejected(
                ErrorKind.TRANSPORT_FAILURE, "Failed to send email", "Please try again later"
            )

        return Sent(message_id=message_id)

    def _log_outcome(self, request: InboundRequest, outcome: PipelineOutcome) -> None:
        if isinstance(outcome, Sent):
            logger.info(
                "AUDIT: Contact message sent id=%s message_id=%s",
                request.request_id,
                outcome.message_id,
                extra={"outcome": "contact_sent", "request_id": request.request_id},
            )
        elif isinstance(outcome, Rejected):
            logger.warning(
                "Contact request rejected id=%s kind=%s status=%s",
                request.request_id,
                outcome.kind.value,
                outcome.status_code,
                extra={
                    "outcome": "contact_rejected",
                    "request_id": request.request_id,
                    "kind": outcome.kind.value,
                },
            )
