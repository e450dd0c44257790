"""Unit tests for the download rate limiter."""

import pytest

from vidscribe.api.rate_limit import DownloadRateLimiter, RateLimitExceeded

NOW = 1_000_000.0


class TestDownloadRateLimiter:
    """Fixed one-hour windows per requester and per IP."""

    def test_requester_limit(self):
        limiter = DownloadRateLimiter(max_per_key=2, max_per_ip=10)
        limiter.check("alice", "10.0.0.1", now=NOW)
        limiter.check("alice", "10.0.0.1", now=NOW + 1)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("alice", "10.0.0.1", now=NOW + 60)

        assert exc_info.value.limit_type == "account"
        assert exc_info.value.wait_minutes == 59
        assert exc_info.value.status_code == 429
        assert exc_info.value.details == {"limit_type": "account", "wait_minutes": 59}

    def test_ip_limit_across_requesters(self):
        """Rotating requester keys doesn't get around the IP cap."""
        limiter = DownloadRateLimiter(max_per_key=10, max_per_ip=2)
        limiter.check("alice", "10.0.0.1", now=NOW)
        limiter.check("bob", "10.0.0.1", now=NOW)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("carol", "10.0.0.1", now=NOW)

        assert exc_info.value.limit_type == "ip"

    def test_window_resets(self):
        limiter = DownloadRateLimiter(max_per_key=1, max_per_ip=10)
        limiter.check("alice", "10.0.0.1", now=NOW)

        limiter.check("alice", "10.0.0.1", now=NOW + 3601)

    def test_wait_is_at_least_one_minute(self):
        limiter = DownloadRateLimiter(max_per_key=1, max_per_ip=10)
        limiter.check("alice", "10.0.0.1", now=NOW)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("alice", "10.0.0.1", now=NOW + 3599.5)

        assert exc_info.value.wait_minutes == 1

    def test_ip_used_when_no_requester_key(self):
        limiter = DownloadRateLimiter(max_per_key=1, max_per_ip=10)
        limiter.check(None, "10.0.0.1", now=NOW)

        with pytest.raises(RateLimitExceeded):
            limiter.check(None, "10.0.0.1", now=NOW)
        limiter.check(None, "10.0.0.2", now=NOW)


class TestRejectedRequestsAreFree:
    """A request turned away by either cap doesn't move any counter."""

    def test_ip_rejection_keeps_requester_quota(self):
        limiter = DownloadRateLimiter(max_per_key=1, max_per_ip=1)
        limiter.check("alice", "10.0.0.1", now=NOW)

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.check("bob", "10.0.0.1", now=NOW)
        assert exc_info.value.limit_type == "ip"

        # bob was never charged, so he can still download from elsewhere
        limiter.check("bob", "10.0.0.2", now=NOW)

    def test_requester_rejection_keeps_ip_quota(self):
        limiter = DownloadRateLimiter(max_per_key=1, max_per_ip=2)
        limiter.check("alice", "10.0.0.1", now=NOW)

        with pytest.raises(RateLimitExceeded):
            limiter.check("alice", "10.0.0.1", now=NOW)

        limiter.check("bob", "10.0.0.1", now=NOW)

    def test_rotating_keys_do_not_grow_the_tables(self):
        limiter = DownloadRateLimiter(max_per_key=10, max_per_ip=1)
        limiter.check("key-0", "10.0.0.1", now=NOW)

        for i in range(1, 1000):
            with pytest.raises(RateLimitExceeded):
                limiter.check(f"key-{i}", "10.0.0.1", now=NOW)

        assert limiter.tracked_windows == 2

    def test_expired_windows_are_dropped(self):
        limiter = DownloadRateLimiter(max_per_key=10, max_per_ip=10)
        for i in range(5):
            limiter.check(f"key-{i}", f"10.0.0.{i}", now=NOW)
        assert limiter.tracked_windows == 10

        limiter.check("late", "10.0.1.1", now=NOW + 3601)

        assert limiter.tracked_windows == 2
