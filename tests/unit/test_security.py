"""Tests for content threat signatures and origin policy."""
import pytest

from formrelay.core.security import detect_suspicious_activity, is_allowed_origin


class TestDetectSuspiciousActivity:
    @pytest.mark.parametrize(
        "text",
        [
            "<script>alert(1)</script>",
            "Hello <SCRIPT type='text/javascript'>steal()</SCRIPT> there",
            "<script>\nmulti\nline\n</script>",
            "click javascript:alert(1)",
            "JavaScript:void(0)",
            "vbscript:msgbox",
            '<img src=x onerror="alert(1)">',
            "<body onload =init()>",
            "data:text/html;base64,PHNjcmlwdD4=",
            "<iframe src='https://evil.example'></iframe>",
            "<object data='x.swf'></object>",
            "<embed src='x.swf'></embed>",
        ],
    )
    def test_flags_injection_signatures(self, text):
        assert detect_suspicious_activity(text) is True

    @pytest.mark.parametrize(
        "text",
        [
            "I love this <3 product",
            "Please call me back tomorrow afternoon.",
            "Prices are 5 > 3 and 2 < 4",
            "My script for the play is attached.",
        ],
    )
    def test_accepts_benign_text(self, text):
        assert detect_suspicious_activity(text) is False

    def test_incidental_event_handler_shape_is_flagged(self):
        # Conservative: a benign "on...=" sequence is still rejected.
        assert detect_suspicious_activity("my donation= 50 dollars") is True

    def test_unclosed_script_tag_is_not_a_script_element(self):
        assert detect_suspicious_activity("<script> without closing") is False


class TestIsAllowedOrigin:
    @pytest.mark.parametrize(
        "origin", [None, "", "https://example.com", "https://evil.com", "null"]
    )
    def test_wildcard_allows_everything(self, origin):
        assert is_allowed_origin(origin, "*") is True

    def test_missing_origin_allowed_under_strict_policy(self):
        assert is_allowed_origin(None, "https://example.com") is True

    def test_exact_match(self):
        assert is_allowed_origin("https://example.com", "https://example.com") is True
        assert is_allowed_origin("https://example.com/", "https://example.com") is False
        assert is_allowed_origin("https://malicious.com", "https://example.com") is False

    def test_wildcard_subdomain(self):
        policy = "*.example.com"
        assert is_allowed_origin("https://api.example.com", policy) is True
        assert is_allowed_origin("https://example.com", policy) is True
        assert is_allowed_origin("example.com", policy) is True
        assert is_allowed_origin("https://evil.com", policy) is False

    def test_wildcard_subdomain_is_a_plain_suffix_match(self):
        # Suffix matching without a dot boundary.
        assert is_allowed_origin("https://notexample.com", "*.example.com") is True
