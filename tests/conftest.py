from typing import List, Optional

import anyio
import httpx
import pytest
from httpx import ASGITransport

from formrelay.api.v1.contact import get_transport
from formrelay.core.config import Settings, get_settings
from formrelay.core.rate_limiter import reset_rate_limiter_state
from formrelay.main import app
from formrelay.services.mail_transport import MailTransport, OutboundEmail, TransportError

# -----------------------------------------------------------------------------
# Synchronous client over httpx's ASGI transport
# -----------------------------------------------------------------------------


class CompatTestClient:
    __test__ = False

    def __init__(self, app, base_url: str = "http://testserver", **kwargs):
        self.app = app
        self._transport = ASGITransport(app=app, raise_app_exceptions=False)
        self._client = httpx.AsyncClient(
            transport=self._transport,
            base_url=base_url,
            **kwargs,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        anyio.run(self._client.aclose)

    def __getattr__(self, name):
        return getattr(self._client, name)

    def request(self, method, url, **kwargs):
        async def _do_request():
            return await self._client.request(method, url, **kwargs)

        return anyio.run(_do_request)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def options(self, url, **kwargs):
        return self.request("OPTIONS", url, **kwargs)


# -----------------------------------------------------------------------------
# Mail transport double
# -----------------------------------------------------------------------------


class FakeTransport(MailTransport):
    """Records outbound emails instead of sending them."""

    def __init__(self, message_id: str = "test-message-id-123") -> None:
        self.message_id = message_id
        self.sent: List[OutboundEmail] = []
        self.error: Optional[Exception] = None

    async def send(self, email: OutboundEmail) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(email)
        return self.message_id

    def fail_with(self, error: Optional[Exception] = None) -> None:
        self.error = error or TransportError("Failed to send email: SES unavailable")


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_limiter():
    """Reset rate limiter state before and after each test."""
    reset_rate_limiter_state()
    yield
    reset_rate_limiter_state()


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        EMAIL="test@example.com",
        DOMAIN="*",
        AWS_REGION="us-east-1",
        MAIL_TRANSPORT="ses",
        RATE_LIMIT_MAX_REQUESTS=5,
        RATE_LIMIT_WINDOW_SECONDS=60,
    )


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def client(test_settings, fake_transport):
    """
    Client with settings and mail transport overridden.
    Tests may mutate ``test_settings`` before issuing requests.
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_transport] = lambda: fake_transport

    with CompatTestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture()
def valid_payload() -> dict:
    return {
        "name": "John Doe",
        "email": "john@example.com",
        "content": "This is a test message with sufficient content length.",
        "subject": "Test Subject",
    }
