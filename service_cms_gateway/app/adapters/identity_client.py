"""
Supabase auth (GoTrue) client for the CMS gateway.
"""

import time
from typing import Any, Dict, Mapping, Optional

import httpx

from shared.errors import (
    AccessLayerException,
    ProviderError,
    from_invalid_json,
    from_provider_error,
    from_transport_error,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector

UPSTREAM = "identity"


class IdentityClient:
    """Client for the identity provider's ``/auth/v1`` REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 15.0,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.metrics = metrics
        self.logger = get_logger("gateway.identity_client")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        headers = {"apikey": self.api_key, "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        start = time.time()
        try:
            response = await self._client.request(
                method, f"{self.base_url}{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            self._record(method, "error", start)
            self.logger.error("Identity provider request failed", method=method, path=path, error=str(exc))
            raise from_transport_error(exc, UPSTREAM) from exc

        self._record(method, response.status_code, start)

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = ProviderError.from_body(response.status_code, body)
            self.logger.warning(
                "Identity provider returned error",
                method=method,
                path=path,
                status_code=response.status_code,
                provider_code=error.code,
            )
            raise from_provider_error(error, context={"method": method, "path": path})

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise from_invalid_json(UPSTREAM, response.status_code) from exc

    def _record(self, method: str, status_code: Any, start: float) -> None:
        if self.metrics:
            self.metrics.record_upstream_request(UPSTREAM, method, status_code, time.time() - start)

    async def get_user(self, token: str) -> Dict[str, Any]:
        """Resolve an access token to the provider's user record."""
        return await self._request("GET", "/user", token=token)

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def sign_up(self, email: str, password: str,
                      metadata: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"email": email, "password": password}
        if metadata:
            payload["data"] = dict(metadata)
        return await self._request("POST", "/signup", json=payload)

    async def sign_out(self, token: str) -> None:
        await self._request("POST", "/logout", token=token)

    async def get_session(self, token: str) -> Dict[str, Any]:
        """Session view of a bearer token: the token itself plus its user."""
        user = await self.get_user(token)
        return {"access_token": token, "token_type": "bearer", "user": user}

    async def ping(self) -> Dict[str, Any]:
        start = time.time()
        try:
            await self._request("GET", "/health")
        except AccessLayerException as exc:
            return {
                "status": "down",
                "responseTime": round((time.time() - start) * 1000, 2),
                "error": str(exc),
            }
        return {"status": "up", "responseTime": round((time.time() - start) * 1000, 2)}
