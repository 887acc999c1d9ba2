"""
=============================================================================
FORMRELAY - SECURITY MODULE
=============================================================================
Content and origin checks applied to every contact submission.

- detect_suspicious_activity: flags markup/script injection signatures
- is_allowed_origin: decides whether a declared Origin fits the policy

Usage:
    from formrelay.core.security import detect_suspicious_activity, is_allowed_origin

    if detect_suspicious_activity(message.content):
        ...
=============================================================================
"""

import re
from typing import Optional, Tuple

WILDCARD_ORIGIN = "*"
WILDCARD_SUBDOMAIN_PREFIX = "*."

_FLAGS = re.IGNORECASE | re.DOTALL

# Matching is deliberately broad: benign text that happens to contain one of
# these shapes is rejected.
SUSPICIOUS_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"<script.*?>.*?</script>", _FLAGS),
    re.compile(r"javascript:", _FLAGS),
    re.compile(r"vbscript:", _FLAGS),
    re.compile(r"on\w+\s*=", _FLAGS),
    re.compile(r"data:text/html", _FLAGS),
    re.compile(r"<iframe.*?>.*?</iframe>", _FLAGS),
    re.compile(r"<object.*?>.*?</object>", _FLAGS),
    re.compile(r"<embed.*?>.*?</embed>", _FLAGS),
)


def detect_suspicious_activity(text: str) -> bool:
    """Return True if any injection signature matches ``text``."""
    return any(pattern.search(text) for pattern in SUSPICIOUS_PATTERNS)


def is_allowed_origin(origin: Optional[str], policy: str) -> bool:
    """
    Check a request Origin against the configured policy.

    - "*" allows everything, including a missing Origin
    - a missing Origin is allowed (same-origin or non-browser clients)
    - "*.example.com" allows any origin ending in "example.com"
    - anything else requires exact equality
    """
    if policy == WILDCARD_ORIGIN or not origin:
        return True

    if policy.startswith(WILDCARD_SUBDOMAIN_PREFIX):
        domain = policy[len(WILDCARD_SUBDOMAIN_PREFIX):]
        return origin == domain or origin.endswith(domain)

    return origin == policy
