"""Tests for the login rate limiter and client address resolution."""
from starlette.requests import Request

import certissuer.auth.session as session_module
import certissuer.config as config
from certissuer.auth.session import LoginRateLimiter, get_client_ip


def make_request(peer: str, forwarded: str | None = None) -> Request:
    headers = []
    if forwarded is not None:
        headers.append((b"x-forwarded-for", forwarded.encode()))
    return Request({"type": "http", "headers": headers, "client": (peer, 40000)})


class TestGetClientIp:

    def test_forwarded_ignored_without_trusted_proxy(self, monkeypatch):
        monkeypatch.setattr(config, "TRUSTED_PROXIES", set())
        request = make_request("203.0.113.7", forwarded="10.0.0.1")
        assert get_client_ip(request) == "203.0.113.7"

    def test_forwarded_ignored_from_untrusted_peer(self, monkeypatch):
        monkeypatch.setattr(config, "TRUSTED_PROXIES", {"10.1.1.1"})
        request = make_request("203.0.113.7", forwarded="10.0.0.1")
        assert get_client_ip(request) == "203.0.113.7"

    def test_trusted_proxy_uses_forwarded_client(self, monkeypatch):
        monkeypatch.setattr(config, "TRUSTED_PROXIES", {"10.1.1.1"})
        request = make_request("10.1.1.1", forwarded="198.51.100.4")
        assert get_client_ip(request) == "198.51.100.4"

    def test_spoofed_prefix_skipped(self, monkeypatch):
        """Entries left of the last untrusted hop are client-controlled."""
        monkeypatch.setattr(config, "TRUSTED_PROXIES", {"10.1.1.1", "10.1.1.2"})
        request = make_request("10.1.1.1", forwarded="1.2.3.4, 198.51.100.4, 10.1.1.2")
        assert get_client_ip(request) == "198.51.100.4"

    def test_trusted_proxy_without_header(self, monkeypatch):
        monkeypatch.setattr(config, "TRUSTED_PROXIES", {"10.1.1.1"})
        assert get_client_ip(make_request("10.1.1.1")) == "10.1.1.1"


class TestLoginRateLimiter:

    async def test_locks_after_max_failures(self):
        limiter = LoginRateLimiter(max_attempts=3, window_seconds=60)
        for _ in range(3):
            assert await limiter.check_rate_limit("1.1.1.1")
            await limiter.record_attempt("1.1.1.1", success=False)

        assert not await limiter.check_rate_limit("1.1.1.1")
        assert await limiter.get_lockout_remaining("1.1.1.1") > 0
        assert await limiter.check_rate_limit("2.2.2.2")

    async def test_success_clears_counter(self):
        limiter = LoginRateLimiter(max_attempts=3, window_seconds=60)
        await limiter.record_attempt("1.1.1.1", success=False)
        await limiter.record_attempt("1.1.1.1", success=True)
        assert len(limiter) == 0

    async def test_expired_entries_pruned(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr(session_module.time, "time", lambda: clock[0])

        limiter = LoginRateLimiter(max_attempts=5, window_seconds=60)
        for i in range(20):
            await limiter.record_attempt(f"10.0.0.{i}", success=False)
        assert len(limiter) == 20

        clock[0] += 120
        await limiter.record_attempt("10.0.1.1", success=False)

        assert len(limiter) == 1

    async def test_locked_entries_survive_pruning(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr(session_module.time, "time", lambda: clock[0])

        limiter = LoginRateLimiter(max_attempts=2, window_seconds=60)
        await limiter.record_attempt("1.1.1.1", success=False)
        clock[0] += 50
        await limiter.record_attempt("1.1.1.1", success=False)

        # Window has passed but the lockout still runs from the last failure
        clock[0] += 20
        await limiter.record_attempt("2.2.2.2", success=False)

        assert len(limiter) == 2
        assert not await limiter.check_rate_limit("1.1.1.1")
