"""
Contact endpoint.

Adapts the HTTP request to the contact pipeline and renders its outcome.
Every method is routed here so that wrong-method requests get the same
JSON error shape and CORS headers as everything else.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from formrelay.core.config import Settings, get_settings
from formrelay.core.rate_limiter import RateLimiter, get_client_ip, get_rate_limiter
from formrelay.core.security import WILDCARD_SUBDOMAIN_PREFIX, is_allowed_origin
from formrelay.schemas.contact import ContactResponse, ErrorResponse
from formrelay.services.contact_pipeline import (
    ContactPipeline,
    InboundRequest,
    PipelineOutcome,
    Preflight,
    Sent,
)
from formrelay.services.mail_transport import MailTransport, get_mail_transport

logger = logging.getLogger(__name__)

router = APIRouter()

ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ALLOWED_METHODS = "POST,OPTIONS"


def get_transport(settings: Settings = Depends(get_settings)) -> MailTransport:
    """Return the mail transport configured for this invocation."""
    return get_mail_transport(settings)


def get_contact_pipeline(
    limiter: RateLimiter = Depends(get_rate_limiter),
    transport: MailTransport = Depends(get_transport),
) -> ContactPipeline:
    return ContactPipeline(rate_limiter=limiter, transport=transport)


def build_cors_headers(settings: Settings, origin: Optional[str]) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Headers": ",".join(settings.ALLOWED_HEADERS),
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Credentials": "true",
    }
    policy = settings.DOMAIN
    if policy.startswith(WILDCARD_SUBDOMAIN_PREFIX):
        # Browsers do not accept a pattern here; echo the matching origin,
        # otherwise send the policy itself, which no browser origin matches.
        if origin and is_allowed_origin(origin, policy):
            headers["Access-Control-Allow-Origin"] = origin
        else:
            headers["Access-Control-Allow-Origin"] = policy
        headers["Vary"] = "Origin"
    else:
        headers["Access-Control-Allow-Origin"] = policy
    return headers


def render_outcome(
    outcome: PipelineOutcome, settings: Settings, origin: Optional[str]
) -> JSONResponse:
    headers = build_cors_headers(settings, origin)

    if isinstance(outcome, Sent):
        body = ContactResponse(message=outcome.message, message_id=outcome.message_id)
        return JSONResponse(
            status_code=200,
            content=body.model_dump(by_alias=True, exclude_none=True),
            headers=headers,
        )

    if isinstance(outcome, Preflight):
        body = ContactResponse(message=outcome.message)
        return JSONResponse(
            status_code=200,
            content=body.model_dump(by_alias=True, exclude_none=True),
            headers=headers,
        )

    body = ErrorResponse(error=outcome.public_message, details=outcome.public_details)
    return JSONResponse(
        status_code=outcome.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


@router.api_route(
    "/contact",
    methods=ROUTED_METHODS,
    summary="Send a contact message",
    description="Validates a contact form submission and emails it to the site owner.",
    response_model=None,
)
async def contact(
    request: Request,
    settings: Settings = Depends(get_settings),
    pipeline: ContactPipeline = Depends(get_contact_pipeline),
) -> JSONResponse:
    raw_body = await request.body()
    inbound = InboundRequest(
        method=request.method,
        headers=dict(request.headers),
        body=raw_body.decode("utf-8", errors="replace") if raw_body else None,
        client_ip=get_client_ip(request),
        request_id=getattr(request.state, "request_id", None),
    )

    outcome = await pipeline.handle(inbound, settings)
    return render_outcome(outcome, settings, inbound.header("Origin"))
