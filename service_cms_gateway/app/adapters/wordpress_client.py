"""
WordPress REST API client for the CMS gateway.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx

from shared.errors import (
    AccessLayerException,
    from_invalid_json,
    from_transport_error,
    from_upstream_response,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector

UPSTREAM = "wordpress"


@dataclass
class WordPressPage:
    """One page of a CMS collection plus its pagination headers."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    total: Optional[str] = None
    total_pages: Optional[str] = None

    def pagination_headers(self) -> Dict[str, str]:
        headers = {}
        if self.total is not None:
            headers["X-WP-Total"] = self.total
        if self.total_pages is not None:
            headers["X-WP-TotalPages"] = self.total_pages
        return headers


class WordPressClient:
    """Client for the WordPress REST API (``/wp/v2``) and JWT auth plugin."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.metrics = metrics
        self.logger = get_logger("gateway.wordpress_client")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Any = None,
        json: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        start = time.time()
        try:
            response = await self._client.request(
                method, f"{self.base_url}{path}", params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            self._record(method, "error", start)
            self.logger.error("WordPress request failed", method=method, path=path, error=str(exc))
            raise from_transport_error(exc, UPSTREAM) from exc

        self._record(method, response.status_code, start)
        if response.status_code >= 400:
            body = self._safe_json(response)
            self.logger.warning(
                "WordPress returned error",
                method=method,
                path=path,
                status_code=response.status_code,
                upstream_code=body.get("code") if isinstance(body, dict) else None,
            )
            raise from_upstream_response(
                response.status_code, body, context={"method": method, "path": path}
            )
        return response

    def _record(self, method: str, status_code: Any, start: float) -> None:
        if self.metrics:
            self.metrics.record_upstream_request(UPSTREAM, method, status_code, time.time() - start)

    @staticmethod
    def _safe_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text[:500]}

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise from_invalid_json(UPSTREAM, response.status_code) from exc

    # JWT auth plugin

    async def issue_token(self, username: str, password: str) -> Dict[str, Any]:
        response = await self._request(
            "POST", "/jwt-auth/v1/token", json={"username": username, "password": password}
        )
        return self._json(response)

    async def validate_token(self, token: str) -> Dict[str, Any]:
        response = await self._request("POST", "/jwt-auth/v1/token/validate", token=token)
        return self._json(response)

    async def get_current_user(self, token: str) -> Dict[str, Any]:
        response = await self._request(
            "GET", "/wp/v2/users/me", token=token, params={"context": "edit"}
        )
        return self._json(response)

    # Collections

    async def list_items(self, collection: str, params: Any = None,
                         token: Optional[str] = None) -> WordPressPage:
        response = await self._request("GET", f"/wp/v2/{collection}", token=token, params=params)
        return WordPressPage(
            items=self._json(response),
            total=response.headers.get("x-wp-total"),
            total_pages=response.headers.get("x-wp-totalpages"),
        )

    async def get_item(self, collection: str, item_id: int, token: Optional[str] = None,
                       context: Optional[str] = "edit") -> Dict[str, Any]:
        params = {"context": context} if context else None
        response = await self._request("GET", f"/wp/v2/{collection}/{item_id}", token=token, params=params)
        return self._json(response)

    async def create_item(self, collection: str, payload: Mapping[str, Any], token: str) -> Dict[str, Any]:
        response = await self._request("POST", f"/wp/v2/{collection}", token=token, json=payload)
        return self._json(response)

    async def update_item(self, collection: str, item_id: int, payload: Mapping[str, Any],
                          token: str) -> Dict[str, Any]:
        response = await self._request("POST", f"/wp/v2/{collection}/{item_id}", token=token, json=payload)
        return self._json(response)

    async def delete_item(self, collection: str, item_id: int, token: str,
                          force: bool = False) -> Dict[str, Any]:
        params = {"force": "true"} if force else None
        response = await self._request("DELETE", f"/wp/v2/{collection}/{item_id}", token=token, params=params)
        return self._json(response)

    # Taxonomies

    async def search_tags(self, name: str, token: Optional[str] = None) -> List[Dict[str, Any]]:
        response = await self._request("GET", "/wp/v2/tags", token=token, params={"search": name})
        return self._json(response)

    async def create_tag(self, name: str, token: str) -> Dict[str, Any]:
        response = await self._request("POST", "/wp/v2/tags", token=token, json={"name": name})
        return self._json(response)

    async def list_terms(self, taxonomy: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        query = {"per_page": 100, "orderby": "count", "order": "desc"}
        query.update(params or {})
        response = await self._request("GET", f"/wp/v2/{taxonomy}", params=query)
        return self._json(response)

    # Comments and likes

    async def list_comments(self, post_id: int) -> List[Dict[str, Any]]:
        params = {"post": post_id, "per_page": 100, "orderby": "date", "order": "asc"}
        response = await self._request("GET", "/wp/v2/comments", params=params)
        return self._json(response)

    async def create_comment(self, post_id: int, data: Mapping[str, Any], token: str) -> Dict[str, Any]:
        payload = dict(data)
        payload["post"] = post_id
        response = await self._request("POST", "/wp/v2/comments", token=token, json=payload)
        return self._json(response)

    async def toggle_like(self, post_id: int, token: str) -> Dict[str, Any]:
        response = await self._request("POST", f"/wp/v2/posts/{post_id}/like", token=token, json={})
        return self._json(response)

    async def ping(self) -> Dict[str, Any]:
        """Reachability probe used by the health route."""
        start = time.time()
        try:
            await self._request("HEAD", "/wp/v2/types")
        except AccessLayerException as exc:
            return {
                "status": "down",
                "responseTime": round((time.time() - start) * 1000, 2),
                "error": str(exc),
            }
        return {"status": "up", "responseTime": round((time.time() - start) * 1000, 2)}
