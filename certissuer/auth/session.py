"""Login rate limiting.

Applies to wallet verification and verifier sign-in. Failed attempts are
counted per client IP; a successful attempt clears the counter.

The limiter is in-memory and per-instance. ``X-Forwarded-For`` is only
honoured when the direct peer is listed in CERTISSUER_TRUSTED_PROXIES.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from fastapi import Request

log = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    """Track login attempts for a single IP."""

    attempts: int = 0
    window_start: float = field(default_factory=time.time)
    locked_until: float = 0.0


class LoginRateLimiter:
    """In-memory rate limiter for login attempts."""

    def __init__(self, max_attempts: int = 5, window_seconds: int = 900) -> None:
        """Initialize the rate limiter.

        Args:
            max_attempts: Maximum failed attempts before lockout
            window_seconds: Time window for counting attempts (default 15 minutes)
        """
        self._entries: dict[str, RateLimitEntry] = {}
        self._max_attempts = max_attempts
        self._window_seconds = window_seconds
        self._last_prune = time.time()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: RateLimitEntry, now: float) -> bool:
        return now - entry.window_start > self._window_seconds and entry.locked_until < now

    def _prune(self, now: float) -> int:
        # Caller holds the lock
        expired = [ip for ip, entry in self._entries.items() if self._is_expired(entry, now)]
        for ip in expired:
            del self._entries[ip]
        self._last_prune = now
        return len(expired)

    async def check_rate_limit(self, ip: str) -> bool:
        """Return True if the IP may attempt a login, False if locked out."""
        async with self._lock:
            entry = self._entries.get(ip)
            now = time.time()

            if entry is None:
                return True

            if entry.locked_until > now:
                return False

            if now - entry.window_start > self._window_seconds:
                del self._entries[ip]
                return True

            return entry.attempts < self._max_attempts

    async def record_attempt(self, ip: str, success: bool) -> None:
        """Record the outcome of a login attempt.

        Expired entries for other IPs are dropped at most once per window.
        """
        async with self._lock:
            now = time.time()

            if now - self._last_prune > self._window_seconds:
                pruned = self._prune(now)
                if pruned:
                    log.debug(f"Pruned {pruned} expired rate limit entries")

            if success:
                self._entries.pop(ip, None)
                return

            entry = self._entries.get(ip)
            if entry is None:
                entry = RateLimitEntry(attempts=1, window_start=now)
                self._entries[ip] = entry
            elif now - entry.window_start > self._window_seconds:
                entry.attempts = 1
                entry.window_start = now
                entry.locked_until = 0.0
            else:
                entry.attempts += 1

            if entry.attempts >= self._max_attempts:
                entry.locked_until = now + self._window_seconds
                log.warning(
                    f"Rate limit exceeded for {ip}: "
                    f"{entry.attempts} failed attempts, locked for {self._window_seconds}s"
                )

    async def get_lockout_remaining(self, ip: str) -> int:
        """Seconds until the lockout for ``ip`` expires, 0 if not locked."""
        async with self._lock:
            entry = self._entries.get(ip)
            if entry is None:
                return 0
            return max(0, int(entry.locked_until - time.time()))


def get_client_ip(request: Request) -> str:
    """Extract the client IP used for rate limiting.

    The forwarded chain is walked from the right, skipping trusted proxies,
    and only when the direct peer is itself a trusted proxy.
    """
    from certissuer.config import TRUSTED_PROXIES

    peer = request.client.host if request.client else "unknown"
    if peer not in TRUSTED_PROXIES:
        return peer

    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded:
        return peer

    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in TRUSTED_PROXIES:
            return hop
    return hops[0] if hops else peer


_rate_limiter: LoginRateLimiter | None = None


def get_rate_limiter() -> LoginRateLimiter:
    """Get the global login rate limiter instance."""
    global _rate_limiter

    if _rate_limiter is None:
        from certissuer.config import LOGIN_RATE_LIMIT_MAX_ATTEMPTS, LOGIN_RATE_LIMIT_WINDOW_SECONDS

        _rate_limiter = LoginRateLimiter(
            max_attempts=LOGIN_RATE_LIMIT_MAX_ATTEMPTS,
            window_seconds=LOGIN_RATE_LIMIT_WINDOW_SECONDS,
        )
        log.info(
            f"Initialized login rate limiter: "
            f"max {LOGIN_RATE_LIMIT_MAX_ATTEMPTS} attempts per {LOGIN_RATE_LIMIT_WINDOW_SECONDS}s"
        )

    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset the global rate limiter (for testing)."""
    global _rate_limiter
    _rate_limiter = None
