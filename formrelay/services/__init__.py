"""
FormRelay Services Module.

Services:
    - ContactPipeline: ordered checks for one contact submission
    - ContactService: email composition for accepted messages
    - SesMailTransport / SmtpMailTransport: mail delivery
"""
from formrelay.services.contact_pipeline import ContactPipeline, InboundRequest
from formrelay.services.contact_service import ContactService, SanitizedContact
from formrelay.services.mail_transport import (
    MailTransport,
    OutboundEmail,
    SesMailTransport,
    SmtpMailTransport,
    TransportError,
)

__all__ = [
    "ContactPipeline",
    "InboundRequest",
    "ContactService",
    "SanitizedContact",
    "MailTransport",
    "OutboundEmail",
    "SesMailTransport",
    "SmtpMailTransport",
    "TransportError",
]
