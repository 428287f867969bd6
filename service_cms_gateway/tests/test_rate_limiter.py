"""
Unit tests for the sliding-window rate limiter.
"""

import threading

import pytest

from service_cms_gateway.app.ratelimit.sliding_window import (
    DEFAULT_RULES,
    RateLimitRule,
    SlidingWindowRateLimiter,
    load_rate_limit_rules,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindowRateLimiter:
    """Test cases for SlidingWindowRateLimiter."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def limiter(self, clock):
        return SlidingWindowRateLimiter(clock=clock)

    def test_default_rule_table(self):
        assert DEFAULT_RULES["default"] == RateLimitRule(60, 60)
        assert DEFAULT_RULES["create"] == RateLimitRule(10, 60)
        assert DEFAULT_RULES["update"] == RateLimitRule(20, 60)
        assert DEFAULT_RULES["delete"] == RateLimitRule(5, 60)
        assert DEFAULT_RULES["auth"] == RateLimitRule(5, 300)

    def test_denies_request_over_budget(self, limiter):
        results = [limiter.check("U1", "delete") for _ in range(6)]
        assert results == [True] * 5 + [False]

    def test_allows_again_after_window(self, limiter, clock):
        for _ in range(5):
            assert limiter.check("U1", "delete")
        assert not limiter.check("U1", "delete")

        clock.advance(60)

        assert limiter.check("U1", "delete")

    def test_window_slides_per_request(self, limiter, clock):
        assert limiter.check("U1", "delete")
        clock.advance(30)
        for _ in range(4):
            assert limiter.check("U1", "delete")
        assert not limiter.check("U1", "delete")

        # Only the first request has aged out.
        clock.advance(30)
        assert limiter.check("U1", "delete")
        assert not limiter.check("U1", "delete")

    def test_denied_requests_do_not_consume_budget(self, limiter, clock):
        for _ in range(5):
            limiter.check("U1", "delete")
        for _ in range(10):
            limiter.check("U1", "delete")

        clock.advance(60)
        assert limiter.get_remaining("U1", "delete") == 5

    def test_identities_and_actions_are_independent(self, limiter):
        for _ in range(5):
            limiter.check("U1", "delete")

        assert not limiter.check("U1", "delete")
        assert limiter.check("U2", "delete")
        assert limiter.check("U1", "update")

    def test_unknown_action_uses_default(self, limiter):
        result = limiter.check_rate_limit("U1", "export")
        assert result["limit"] == 60

    def test_check_rate_limit_details(self, limiter, clock):
        first = limiter.check_rate_limit("U1", "auth")
        assert first == {
            "allowed": True,
            "current_count": 1,
            "limit": 5,
            "remaining": 4,
            "reset_in_seconds": 300,
        }

        for _ in range(4):
            limiter.check("U1", "auth")
        clock.advance(100)
        denied = limiter.check_rate_limit("U1", "auth")

        assert denied["allowed"] is False
        assert denied["remaining"] == 0
        assert denied["reset_in_seconds"] == 200

    def test_reset(self, limiter):
        for _ in range(5):
            limiter.check("U1", "delete")
        limiter.check("U1", "update")

        limiter.reset("U1", "delete")
        assert limiter.get_remaining("U1", "delete") == 5
        assert limiter.get_remaining("U1", "update") == 19

        limiter.reset("U1")
        assert limiter.get_remaining("U1", "update") == 20

    def test_stats(self, limiter):
        for _ in range(6):
            limiter.check("U1", "delete")
        limiter.check("U2", "create")

        stats = limiter.get_stats()

        assert stats["active_windows"] == 2
        assert stats["tracked_requests"] == 6
        assert stats["denied_total"] == 1
        assert stats["rules"]["delete"] == {"max_requests": 5, "window_seconds": 60}

    def test_expired_windows_are_evicted_on_check(self, limiter, clock):
        for i in range(5000):
            limiter.check(f"ip:10.0.{i}", "default")

        clock.advance(10000)
        limiter.check("ip:10.1.0.1", "default")

        assert len(limiter._windows) == 1
        assert limiter.get_stats()["active_windows"] == 1

    def test_stats_evict_expired_windows(self, limiter, clock):
        limiter.check("ip:10.0.0.1", "default")
        limiter.check("U1", "auth")

        clock.advance(60)
        stats = limiter.get_stats()

        assert stats["active_windows"] == 1
        assert list(limiter._windows) == [("U1", "auth")]

    def test_get_remaining_drops_empty_window(self, limiter, clock):
        limiter.check("U1", "delete")
        clock.advance(60)

        assert limiter.get_remaining("U1", "delete") == 5
        assert ("U1", "delete") not in limiter._windows

    def test_concurrent_checks_never_exceed_budget(self):
        limiter = SlidingWindowRateLimiter({"default": RateLimitRule(50, 60)})
        allowed = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                result = limiter.check("U1", "default")
                with lock:
                    allowed.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert allowed.count(True) == 50


class TestLoadRateLimitRules:

    def test_no_file_returns_defaults(self):
        assert load_rate_limit_rules(None) == DEFAULT_RULES

    def test_yaml_overrides_merge_with_defaults(self, tmp_path):
        path = tmp_path / "limits.yaml"
        path.write_text(
            "rules:\n"
            "  create: {max_requests: 3, window_seconds: 30}\n"
            "  export: {max_requests: 1, window_seconds: 3600}\n"
        )

        rules = load_rate_limit_rules(str(path))

        assert rules["create"] == RateLimitRule(3, 30)
        assert rules["export"] == RateLimitRule(1, 3600)
        assert rules["delete"] == DEFAULT_RULES["delete"]

    def test_invalid_entry(self, tmp_path):
        path = tmp_path / "limits.yaml"
        path.write_text("rules:\n  create: 10\n")

        with pytest.raises(ValueError):
            load_rate_limit_rules(str(path))
