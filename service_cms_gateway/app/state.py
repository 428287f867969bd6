"""
Process-local state shared by gateway requests.

Everything mutable that outlives a request lives here and is handed to the
service explicitly, so tests (or a future shared-store deployment) can swap
any part of it.
"""

from dataclasses import dataclass
from typing import Optional

from shared.config import BaseConfig
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig

from service_cms_gateway.app.auth.token_cache import ServiceTokenCache
from service_cms_gateway.app.domain.health import HealthMonitor
from service_cms_gateway.app.ratelimit.sliding_window import SlidingWindowRateLimiter, load_rate_limit_rules


@dataclass
class GatewayState:
    token_cache: ServiceTokenCache
    rate_limiter: SlidingWindowRateLimiter
    health_monitor: HealthMonitor


def build_state(config: BaseConfig, cms_client, metrics: Optional[MetricsCollector] = None) -> GatewayState:
    """Create the default in-memory state from configuration."""
    token_cache = ServiceTokenCache(
        cms_client,
        config.wordpress_api_user,
        config.wordpress_api_pass,
        ttl_seconds=config.service_token_ttl_seconds,
        retry_config=RetryConfig(
            max_attempts=config.token_exchange_attempts,
            base_delay=config.token_exchange_backoff_seconds,
            max_delay=10.0,
        ),
        metrics=metrics,
    )
    rate_limiter = SlidingWindowRateLimiter(load_rate_limit_rules(config.rate_limits_file))
    health_monitor = HealthMonitor(
        config.error_buffer_size,
        max_critical_errors=config.health_max_critical_errors,
        max_total_errors=config.health_max_total_errors,
    )
    return GatewayState(token_cache=token_cache, rate_limiter=rate_limiter, health_monitor=health_monitor)
