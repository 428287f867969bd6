"""
Service credential cache for CMS calls made on the gateway's own behalf.

The gateway reads items for ownership checks and writes heritage content
with a service account. The account's JWT is exchanged lazily, cached until
shortly before the issuer's expiry, and shared by every request in the
process.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional

from shared.errors import AccessLayerException, UpstreamContentError, is_retryable
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_on_exception

SERVICE_AUTH_FAILED = "CMS_SERVICE_AUTH_FAILED"


class ServiceTokenCache:
    """Single-flight cache around the CMS JWT token exchange."""

    def __init__(
        self,
        client,
        username: Optional[str],
        password: Optional[str],
        *,
        ttl_seconds: float = 55 * 60,
        retry_config: Optional[RetryConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self._client = client
        self._username = username
        self._password = password
        self.ttl_seconds = ttl_seconds
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=0.5, max_delay=5.0)
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("gateway.token_cache")

        self._token: Optional[str] = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()
        self.exchange_count = 0

    def _cached(self) -> Optional[str]:
        if self._token and self._clock() < self._expires_at:
            return self._token
        return None

    async def get_token(self) -> str:
        """Return a valid service token, exchanging credentials if needed."""
        token = self._cached()
        if token:
            return token

        async with self._lock:
            # Another waiter may have refreshed while we queued on the lock.
            token = self._cached()
            if token:
                return token

            token = await self._exchange()
            self._token = token
            self._expires_at = self._clock() + self.ttl_seconds
            self.logger.info("Service token refreshed", ttl_seconds=self.ttl_seconds)
            return token

    def invalidate(self, token: Optional[str] = None) -> None:
        """Drop the cached token so the next call performs a fresh exchange.

        With ``token``, only that token is dropped; a newer one cached by a
        concurrent refresh is kept.
        """
        if token is not None and token != self._token:
            return
        self._token = None
        self._expires_at = 0.0

    def status(self) -> Dict[str, Any]:
        remaining = self._expires_at - self._clock() if self._token else 0.0
        return {
            "cached": self._cached() is not None,
            "expires_in_seconds": max(0, int(remaining)),
            "exchanges": self.exchange_count,
        }

    async def _exchange(self) -> str:
        if not self._username or not self._password:
            self._record_exchange("failure")
            raise UpstreamContentError(
                "service account credentials are not configured",
                code=SERVICE_AUTH_FAILED,
                retryable=False,
            )

        @retry_on_exception((AccessLayerException,), config=self.retry_config, retry_if=is_retryable)
        async def _attempt() -> str:
            self.exchange_count += 1
            result = await self._client.issue_token(self._username, self._password)
            token = result.get("token") if isinstance(result, dict) else None
            if not token:
                raise UpstreamContentError(
                    "token endpoint returned no token",
                    upstream_status=200,
                    retryable=False,
                )
            return token

        try:
            token = await _attempt()
        except RetryError as exc:
            cause = exc.last_exception
            self._record_exchange("failure")
            raise UpstreamContentError(
                f"service credential exchange failed after {exc.attempts} attempts: {cause}",
                code=SERVICE_AUTH_FAILED,
                retryable=True,
                context={"attempts": exc.attempts},
            ) from cause
        except AccessLayerException as exc:
            self._record_exchange("failure")
            raise UpstreamContentError(
                f"service credential exchange rejected: {exc.message}",
                code=SERVICE_AUTH_FAILED,
                retryable=exc.retryable,
                context={"upstream_code": exc.code},
            ) from exc

        self._record_exchange("success")
        return token

    def _record_exchange(self, status: str) -> None:
        if self.metrics:
            self.metrics.record_token_exchange(status)
