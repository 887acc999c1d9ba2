"""End-to-end contact flows over HTTP."""
import json
import logging

CONTACT_URL = "/api/v1/contact"


def _post(client, payload, ip="198.51.100.20", **headers):
    headers = {"X-Forwarded-For": ip, **headers}
    return client.post(CONTACT_URL, content=json.dumps(payload), headers=headers)


def test_contact_success_with_exact_origin(client, test_settings, fake_transport, valid_payload):
    test_settings.DOMAIN = "https://example.com"

    response = _post(client, valid_payload, Origin="https://example.com")

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "success": True,
        "message": "Your message has been sent successfully!",
        "messageId": "test-message-id-123",
    }
    assert response.headers["access-control-allow-origin"] == "https://example.com"
    assert len(fake_transport.sent) == 1


def test_validation_errors_listed_together(client, fake_transport):
    response = _post(client, {"name": "J", "email": "bad", "content": "short"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "Name must be at least 2 characters long" in body["error"]
    assert "Message must be at least 10 characters long" in body["error"]
    assert "details" not in body
    assert fake_transport.sent == []


def test_rate_limit_after_five_requests(client, fake_transport, valid_payload):
    for _ in range(5):
        response = _post(client, valid_payload, ip="192.168.1.100")
        assert response.status_code == 200

    blocked = _post(client, valid_payload, ip="192.168.1.100")

    assert blocked.status_code == 429
    assert blocked.json() == {
        "success": False,
        "error": "Too many requests",
        "details": "Please try again later",
    }
    assert len(fake_transport.sent) == 5

    # Another client is unaffected.
    assert _post(client, valid_payload, ip="192.168.1.101").status_code == 200


def test_preflight_returns_cors_headers_without_sending(client, fake_transport):
    response = client.options(
        CONTACT_URL,
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.json()["message"] == "CORS preflight successful"
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST,OPTIONS"
    assert response.headers["access-control-allow-credentials"] == "true"
    assert "content-type" in response.headers["access-control-allow-headers"].lower()
    assert fake_transport.sent == []


def test_get_is_method_not_allowed(client):
    response = client.get(CONTACT_URL)

    assert response.status_code == 405
    assert response.json() == {
        "success": False,
        "error": "Method not allowed",
        "details": "Only POST requests are supported",
    }
    assert "access-control-allow-origin" in response.headers


def test_forbidden_origin(client, test_settings, fake_transport, valid_payload):
    test_settings.DOMAIN = "https://example.com"

    response = _post(client, valid_payload, Origin="https://malicious.com")

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"
    assert fake_transport.sent == []


def test_wildcard_subdomain_echoes_origin(client, test_settings, valid_payload):
    test_settings.DOMAIN = "*.example.com"

    response = _post(client, valid_payload, Origin="https://app.example.com")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://app.example.com"
    assert response.headers["vary"] == "Origin"


def test_missing_body(client):
    response = client.post(CONTACT_URL, headers={"X-Forwarded-For": "198.51.100.30"})

    assert response.status_code == 400
    assert response.json()["error"] == "Request body is required"


def test_invalid_json(client):
    response = client.post(
        CONTACT_URL, content="invalid json", headers={"X-Forwarded-For": "198.51.100.31"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid JSON in request body"


def test_suspicious_content(client, fake_transport, valid_payload):
    payload = dict(valid_payload, content="Hi <script>alert('xss')</script> there")

    response = _post(client, payload)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Invalid content",
        "details": "Suspicious content detected",
    }
    assert fake_transport.sent == []


def test_transport_failure_is_generic(client, fake_transport, valid_payload, caplog):
    fake_transport.fail_with()
    caplog.set_level(logging.ERROR, logger="formrelay.services.contact_pipeline")

    response = _post(client, valid_payload)

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Failed to send email",
        "details": "Please try again later",
    }
    assert "SES unavailable" in caplog.text


def test_missing_sender_configuration(client, test_settings, valid_payload):
    test_settings.EMAIL = None

    response = _post(client, valid_payload)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to send email"


def test_internal_error_does_not_leak(client, fake_transport, valid_payload):
    fake_transport.fail_with(RuntimeError("database password is hunter2"))

    response = _post(client, valid_payload)

    assert response.status_code == 500
    body = response.json()
    assert body == {
        "success": False,
        "error": "Internal server error",
        "details": "An unexpected error occurred",
    }
    assert "hunter2" not in response.text


def test_request_id_and_security_headers(client, valid_payload):
    response = _post(client, valid_payload, **{"X-Request-ID": "req-42"})

    assert response.headers["x-request-id"] == "req-42"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert "x-process-time" in response.headers
    assert response.headers["content-security-policy"] == "default-src 'none'; frame-ancestors 'none'"
    assert response.headers["cache-control"] == "no-store"
    assert response.headers["cross-origin-resource-policy"] == "cross-origin"


def test_docs_page_is_not_locked_down(client):
    response = client.get("/docs")

    assert response.status_code == 200
    assert response.headers["x-content-type-options"] == "nosniff"
    assert "content-security-policy" not in response.headers


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_error_outside_pipeline_uses_generic_body(client):
    from formrelay.api.v1.contact import get_transport
    from formrelay.main import app

    def _broken_transport():
        raise RuntimeError("boto3 exploded with secret details")

    app.dependency_overrides[get_transport] = _broken_transport

    response = _post(client, {"name": "John Doe"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Internal server error"
    assert "secret" not in response.text
