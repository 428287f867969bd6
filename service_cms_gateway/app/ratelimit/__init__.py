"""
Rate limiting package for the CMS gateway.

Holds the in-process sliding-window limiter that enforces per-identity,
per-action request budgets.
"""

from .sliding_window import DEFAULT_RULES, RateLimitRule, SlidingWindowRateLimiter, load_rate_limit_rules

__all__ = ["DEFAULT_RULES", "RateLimitRule", "SlidingWindowRateLimiter", "load_rate_limit_rules"]
