"""
=============================================================================
FORMRELAY - RATE LIMITER MODULE
=============================================================================
Per-client fixed-window request limiting for the contact endpoint.

Features:
- Fixed window per identity: count + window start, reset once the window elapses
- Per-identity locking: same-identity checks serialize, others never wait
  on each other beyond the table lookup
- Explicit sweep of stale entries (the caller owns the schedule)
- Trusted-proxy validation for X-Forwarded-For

The in-memory backend is single-process only. Multi-instance deployments
provide another RateLimiter implementation behind the same interface.

Usage:
    from formrelay.core.rate_limiter import get_client_ip, rate_limiter

    if not rate_limiter.allow(get_client_ip(request), 5, 60):
        ...
=============================================================================
"""

import asyncio
import ipaddress
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict, List, Optional

from fastapi import Request

from formrelay.core.config import settings

logger = logging.getLogger(__name__)

# Shared identity for requests without an extractable client address.
UNKNOWN_IDENTITY = "unknown"

# Parsed trusted proxy networks (built once at import)
_trusted_networks: List[ipaddress.IPv4Network | ipaddress.IPv6Network] = []


def _build_trusted_networks() -> None:
    """Parse TRUSTED_PROXIES setting into network objects."""
    global _trusted_networks
    nets = []
    for entry in settings.TRUSTED_PROXIES:
        try:
            nets.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("Invalid TRUSTED_PROXIES entry ignored: %s", entry)
    _trusted_networks = nets


_build_trusted_networks()


# =============================================================================
# LIMITER ABSTRACTION
# =============================================================================


@dataclass
class RateLimitEntry:
    count: int
    window_start: float
    lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    removed: bool = False


class RateLimiter(ABC):
    """Request-frequency limiter keyed by client identity."""

    @abstractmethod
    def allow(self, identity: str, max_requests: int, window_seconds: float) -> bool:
        """Count a request for ``identity`` and return whether it may proceed."""

    @abstractmethod
    def sweep(self, window_seconds: float, retention_multiple: float = 2.0) -> int:
        """Drop entries older than ``retention_multiple * window_seconds``; return how many."""

    @abstractmethod
    def reset(self) -> None:
        """Clear all state (for tests)."""

    @abstractmethod
    def stats(self) -> dict:
        """Return debugging stats."""


class InMemoryRateLimiter(RateLimiter):
    """Thread-safe in-memory limiter (single-instance only)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._table_lock = Lock()
        self._entries: Dict[str, RateLimitEntry] = {}

    def _get_or_create(self, identity: str) -> Optional[RateLimitEntry]:
        """Return the existing entry, or None after creating a fresh one."""
        with self._table_lock:
            entry = self._entries.get(identity)
            if entry is None:
                self._entries[identity] = RateLimitEntry(
                    count=1, window_start=self._clock()
                )
            return entry

    def allow(self, identity: str, max_requests: int, window_seconds: float) -> bool:
        while True:
            entry = self._get_or_create(identity)
            if entry is None:
                return True

            with entry.lock:
                if entry.removed:
                    # Swept between lookup and lock; start over on a new entry.
                    continue

                now = self._clock()
                if now - entry.window_start > window_seconds:
                    entry.count = 1
                    entry.window_start = now
                    return True

                if entry.count >= max_requests:
                    return False

                entry.count += 1
                return True

    def sweep(self, window_seconds: float, retention_multiple: float = 2.0) -> int:
        cutoff = window_seconds * retention_multiple
        now = self._clock()
        removed = 0
        with self._table_lock:
            for identity, entry in list(self._entries.items()):
                with entry.lock:
                    if now - entry.window_start > cutoff:
                        entry.removed = True
                        del self._entries[identity]
                        removed += 1
        if removed:
            logger.info("Rate limiter swept %d stale entries", removed)
        return removed

    def reset(self) -> None:
        with self._table_lock:
            for entry in self._entries.values():
                entry.removed = True
            self._entries.clear()

    def stats(self) -> dict:
        with self._table_lock:
            entries = dict(self._entries)
        return {
            "backend": "in_memory",
            "tracked_keys": len(entries),
            "counts": {identity: entry.count for identity, entry in entries.items()},
        }


rate_limiter: RateLimiter = InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter used by the contact endpoint."""
    return rate_limiter


# =============================================================================
# IP EXTRACTION
# =============================================================================


def _is_trusted_proxy(ip_str: str) -> bool:
    """Check if an IP belongs to the configured trusted proxy ranges."""
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in net for net in _trusted_networks)


def get_client_ip(request: Request) -> str:
    """Extract client IP, trusting X-Forwarded-For only from trusted proxies."""
    direct_ip = request.client.host if request.client else UNKNOWN_IDENTITY

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and _is_trusted_proxy(direct_ip):
        # Rightmost untrusted IP is the real client
        parts = [p.strip() for p in forwarded.split(",") if p.strip()]
        for ip in reversed(parts):
            if not _is_trusted_proxy(ip):
                return ip
        # All IPs in chain are trusted, use leftmost
        if parts:
            return parts[0]

    return direct_ip or UNKNOWN_IDENTITY


# =============================================================================
# SCHEDULED SWEEP
# =============================================================================


async def sweep_periodically(
    limiter: RateLimiter,
    interval_seconds: float,
    window_seconds: float,
    retention_multiple: float,
) -> None:
    """Sweep ``limiter`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            limiter.sweep(window_seconds, retention_multiple)
        except Exception:
            logger.exception("Rate limiter sweep failed")


# =============================================================================
# TEST / DEBUG HELPERS
# =============================================================================


def reset_rate_limiter_state() -> None:
    """Clear rate limiter state. Intended for tests."""
    rate_limiter.reset()


def get_rate_limit_stats() -> dict:
    """Get current rate limiting statistics (for admin/debugging)."""
    return rate_limiter.stats()
