"""
Mail transports for contact messages.

Both transports take an OutboundEmail and return the delivery identifier
reported by the mail service. Failures surface as TransportError; there is
no retry here, the client is expected to resubmit.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from functools import lru_cache
from typing import Any, Optional

import boto3

from formrelay.core.config import Settings

logger = logging.getLogger(__name__)

CHARSET = "UTF-8"


@dataclass(frozen=True)
class OutboundEmail:
    sender: str
    recipient: str
    reply_to: str
    subject: str
    text_body: str
    html_body: str


class TransportError(Exception):
    """The mail service did not accept the message."""

    def __init__(self, message: str, reason: str = "send_failed") -> None:
        super().__init__(message)
        self.reason = reason


class MailConfigurationError(TransportError):
    """Mail delivery is not configured (missing sender or server)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, reason="not_configured")


class MailTransport(ABC):
    @abstractmethod
    async def send(self, email: OutboundEmail) -> str:
        """Deliver ``email`` and return its message identifier."""


class SesMailTransport(MailTransport):
    """Amazon SES delivery through boto3."""

    def __init__(
        self,
        region_name: str,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self._client = client or boto3.client(
            "ses", region_name=region_name, endpoint_url=endpoint_url
        )

    def _send_sync(self, email: OutboundEmail) -> str:
        try:
            response = self._client.send_email(
                Source=email.sender,
                Destination={"ToAddresses": [email.recipient]},
                ReplyToAddresses=[email.reply_to],
                Message={
                    "Subject": {"Charset": CHARSET, "Data": email.subject},
                    "Body": {
                        "Text": {"Charset": CHARSET, "Data": email.text_body},
                        "Html": {"Charset": CHARSET, "Data": email.html_body},
                    },
                },
            )
        except Exception as exc:
            raise TransportError(f"Failed to send email: {exc}") from exc

        message_id = response.get("MessageId")
        if not message_id:
            raise TransportError(
                "Failed to send email - no message ID received",
                reason="no_message_id",
            )
        return message_id

    async def send(self, email: OutboundEmail) -> str:
        return await asyncio.to_thread(self._send_sync, email)


class SmtpMailTransport(MailTransport):
    """SMTP delivery with STARTTLS."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password

    def build_message(self, email: OutboundEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = email.sender
        msg["To"] = email.recipient
        msg["Reply-To"] = email.reply_to
        msg["Subject"] = email.subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(email.text_body, charset="utf-8")
        msg.add_alternative(email.html_body, subtype="html", charset="utf-8")
        return msg

    def _send_sync(self, email: OutboundEmail) -> str:
        if not self._host:
            raise MailConfigurationError("SMTP_HOST is not configured")

        msg = self.build_message(email)
        try:
            with smtplib.SMTP(self._host, self._port) as server:
                server.starttls()
                if self._user and self._password:
                    server.login(self._user, self._password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"Failed to send email: {exc}") from exc

        return msg["Message-ID"]

    async def send(self, email: OutboundEmail) -> str:
        return await asyncio.to_thread(self._send_sync, email)


@lru_cache(maxsize=8)
def _ses_transport(region_name: str, endpoint_url: Optional[str]) -> SesMailTransport:
    return SesMailTransport(region_name=region_name, endpoint_url=endpoint_url)


def get_mail_transport(settings: Settings) -> MailTransport:
    """Return the transport selected by MAIL_TRANSPORT."""
    if settings.MAIL_TRANSPORT == "smtp":
        return SmtpMailTransport(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=settings.SMTP_USER,
            password=(
                settings.SMTP_PASSWORD.get_secret_value()
                if settings.SMTP_PASSWORD
                else None
            ),
        )
    return _ses_transport(settings.AWS_REGION, settings.SES_ENDPOINT_URL)
