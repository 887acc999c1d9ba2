from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Optional

from formrelay.core.sanitizer import sanitize_input
from formrelay.schemas.contact import ContactMessage
from formrelay.services.mail_transport import OutboundEmail

DEFAULT_SUBJECT = "New Contact Form Submission"
FOOTER = "This message was sent via the contact form."


@dataclass(frozen=True)
class SanitizedContact:
    """Contact fields escaped for HTML rendering. Built once per request."""

    name: str
    email: str
    content: str
    subject: Optional[str] = None

    @classmethod
    def from_message(cls, message: ContactMessage) -> "SanitizedContact":
        return cls(
            name=sanitize_input(message.name),
            # Format-validated, not escaped.
            email=message.email,
            content=sanitize_input(message.content),
            subject=(
                sanitize_input(message.subject) if message.subject is not None else None
            ),
        )


class ContactService:
    """Composes the notification email for an accepted contact message."""

    def build_email_message(self, contact: SanitizedContact, sender: str) -> OutboundEmail:
        # Header-safe: no line breaks survive into the Subject header.
        subject = " ".join((contact.subject or "").split()) or DEFAULT_SUBJECT

        text_body = "\n".join(
            [
                "New contact form submission:",
                "",
                f"Name: {contact.name}",
                f"Email: {contact.email}",
                f"Subject: {subject}",
                "",
                "Message:",
                contact.content,
                "",
                "---",
                FOOTER,
            ]
        )

        email_attr = html.escape(contact.email, quote=True)
        html_body = "\n".join(
            [
                "<html>",
                "<body>",
                "  <h2>New Contact Form Submission</h2>",
                f"  <p><strong>Name:</strong> {contact.name}</p>",
                f'  <p><strong>Email:</strong> <a href="mailto:{email_attr}">{email_attr}</a></p>',
                f"  <p><strong>Subject:</strong> {subject}</p>",
                "  <h3>Message:</h3>",
                '  <div style="background-color: #f5f5f5; padding: 15px; '
                'border-left: 3px solid #007bff;">',
                "    " + contact.content.replace("\n", "<br>"),
                "  </div>",
                "  <hr>",
                f"  <p><em>{FOOTER}</em></p>",
                "</body>",
                "</html>",
            ]
        )

        return OutboundEmail(
            sender=sender,
            recipient=sender,
            reply_to=contact.email,
            subject=subject,
            text_body=text_body,
            html_body=html_body,
        )
