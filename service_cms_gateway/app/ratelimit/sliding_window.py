"""
Sliding-window rate limiter for the CMS gateway.

Windows are kept in process memory, keyed by ``(identity, action)``. This is
only correct for a single gateway instance; a shared store would be needed
to scale out. Windows with no requests left inside them are evicted, at the
latest once per longest configured window.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Optional, Tuple

import yaml

from shared.logging import get_logger


@dataclass(frozen=True)
class RateLimitRule:
    """Budget for one action: ``max_requests`` per ``window_seconds``."""

    max_requests: int
    window_seconds: float


DEFAULT_RULES: Dict[str, RateLimitRule] = {
    "default": RateLimitRule(60, 60),
    "create": RateLimitRule(10, 60),
    "update": RateLimitRule(20, 60),
    "delete": RateLimitRule(5, 60),
    "auth": RateLimitRule(5, 300),
    "comment": RateLimitRule(20, 60),
    "like": RateLimitRule(60, 60),
}


def load_rate_limit_rules(path: Optional[str]) -> Dict[str, RateLimitRule]:
    """Load rule overrides from YAML, merged over the defaults.

    Expected shape::

        rules:
          create: {max_requests: 10, window_seconds: 60}
    """
    rules = dict(DEFAULT_RULES)
    if not path:
        return rules

    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    entries = data.get("rules", data) if isinstance(data, dict) else {}
    for action, entry in entries.items():
        if not isinstance(entry, dict):
            raise ValueError(f"Rate limit rule for '{action}' must be a mapping")
        rules[str(action)] = RateLimitRule(
            max_requests=int(entry["max_requests"]),
            window_seconds=float(entry["window_seconds"]),
        )
    return rules


class SlidingWindowRateLimiter:
    """Per-identity, per-action sliding-window request counter."""

    def __init__(
        self,
        rules: Optional[Dict[str, RateLimitRule]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rules = dict(rules or DEFAULT_RULES)
        self.rules.setdefault("default", DEFAULT_RULES["default"])
        self._clock = clock
        self._windows: Dict[Tuple[str, str], Deque[float]] = {}
        self._lock = threading.Lock()
        self._denied = 0
        self._last_sweep = clock()
        self.logger = get_logger("gateway.rate_limiter")

    def rule_for(self, action: str) -> RateLimitRule:
        return self.rules.get(action, self.rules["default"])

    def _prune(self, window: Deque[float], now: float, rule: RateLimitRule) -> None:
        cutoff = now - rule.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def _sweep(self, now: float) -> None:
        """Drop windows whose requests have all aged out. Caller holds the lock."""
        expired = []
        for (identity, action), window in self._windows.items():
            self._prune(window, now, self.rule_for(action))
            if not window:
                expired.append((identity, action))
        for key in expired:
            del self._windows[key]
        self._last_sweep = now

    def _sweep_due(self, now: float) -> bool:
        longest = max(rule.window_seconds for rule in self.rules.values())
        return now - self._last_sweep >= longest

    def check(self, identity: str, action: str) -> bool:
        """Record a request and report whether it is within budget."""
        return self.check_rate_limit(identity, action)["allowed"]

    def check_rate_limit(self, identity: str, action: str) -> Dict[str, Any]:
        rule = self.rule_for(action)
        key = (identity, action)

        with self._lock:
            now = self._clock()
            if self._sweep_due(now):
                self._sweep(now)
            window = self._windows.setdefault(key, deque())
            self._prune(window, now, rule)

            if len(window) >= rule.max_requests:
                self._denied += 1
                reset_in = rule.window_seconds - (now - window[0])
                self.logger.warning(
                    "Rate limit exceeded",
                    identity=identity,
                    action=action,
                    current_count=len(window),
                    limit=rule.max_requests,
                )
                return {
                    "allowed": False,
                    "current_count": len(window),
                    "limit": rule.max_requests,
                    "remaining": 0,
                    "reset_in_seconds": max(1, int(reset_in + 0.999)),
                }

            window.append(now)
            return {
                "allowed": True,
                "current_count": len(window),
                "limit": rule.max_requests,
                "remaining": rule.max_requests - len(window),
                "reset_in_seconds": int(rule.window_seconds),
            }

    def get_remaining(self, identity: str, action: str) -> int:
        rule = self.rule_for(action)
        with self._lock:
            window = self._windows.get((identity, action))
            if not window:
                return rule.max_requests
            self._prune(window, self._clock(), rule)
            if not window:
                del self._windows[(identity, action)]
            return max(0, rule.max_requests - len(window))

    def reset(self, identity: str, action: Optional[str] = None) -> None:
        """Forget recorded requests for an identity (one action or all)."""
        with self._lock:
            if action is not None:
                self._windows.pop((identity, action), None)
                return
            for key in [k for k in self._windows if k[0] == identity]:
                del self._windows[key]

        self.logger.info("Rate limit reset", identity=identity, action=action)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            self._sweep(self._clock())
            return {
                "active_windows": len(self._windows),
                "tracked_requests": sum(len(window) for window in self._windows.values()),
                "denied_total": self._denied,
                "rules": {
                    action: {"max_requests": rule.max_requests, "window_seconds": rule.window_seconds}
                    for action, rule in self.rules.items()
                },
            }
