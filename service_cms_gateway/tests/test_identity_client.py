"""
Unit tests for the identity provider client.
"""

import json

import httpx
import pytest

from shared.errors import AuthenticationError, NetworkError, UpstreamAuthError, ValidationError

from service_cms_gateway.app.adapters.identity_client import IdentityClient

BASE_URL = "http://identity.test"


def make_client(handler):
    return IdentityClient(BASE_URL, "anon-key", timeout=5.0, transport=httpx.MockTransport(handler))


class TestIdentityClient:
    """Test cases for IdentityClient."""

    @pytest.mark.asyncio
    async def test_get_user_sends_api_key_and_bearer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["apikey"] = request.headers.get("apikey")
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"id": "U1", "email": "u1@example.com"})

        client = make_client(handler)
        user = await client.get_user("user-token")
        await client.close()

        assert user["id"] == "U1"
        assert seen == {"path": "/auth/v1/user", "apikey": "anon-key", "auth": "Bearer user-token"}

    @pytest.mark.asyncio
    async def test_sign_in_with_password(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/token"
            assert request.url.params["grant_type"] == "password"
            assert json.loads(request.content) == {"email": "u1@example.com", "password": "pw"}
            return httpx.Response(200, json={"access_token": "at", "user": {"id": "U1"}})

        client = make_client(handler)
        session = await client.sign_in_with_password("u1@example.com", "pw")
        await client.close()

        assert session["access_token"] == "at"

    @pytest.mark.asyncio
    async def test_sign_up_passes_metadata(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["data"] == {"full_name": "Nadia"}
            return httpx.Response(200, json={"id": "U2", "email": body["email"]})

        client = make_client(handler)
        user = await client.sign_up("nadia@example.com", "secret1", {"full_name": "Nadia"})
        await client.close()

        assert user["id"] == "U2"

    @pytest.mark.asyncio
    async def test_sign_out_accepts_empty_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/logout"
            return httpx.Response(204)

        client = make_client(handler)
        assert await client.sign_out("user-token") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"code": 401, "error_code": "bad_jwt", "msg": "invalid JWT"})

        client = make_client(handler)
        with pytest.raises(AuthenticationError) as exc_info:
            await client.get_user("expired")
        await client.close()

        assert exc_info.value.code == "AUTH_INVALID_USER"

    @pytest.mark.asyncio
    async def test_weak_password(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"error_code": "weak_password", "msg": "Password is too weak"})

        client = make_client(handler)
        with pytest.raises(ValidationError):
            await client.sign_up("nadia@example.com", "1")
        await client.close()

    @pytest.mark.asyncio
    async def test_provider_outage(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="upstream unavailable")

        client = make_client(handler)
        with pytest.raises(UpstreamAuthError) as exc_info:
            await client.get_user("user-token")
        await client.close()

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connect_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)
        with pytest.raises(NetworkError):
            await client.get_user("user-token")
        await client.close()

    @pytest.mark.asyncio
    async def test_get_session(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "U1"})

        client = make_client(handler)
        session = await client.get_session("user-token")
        await client.close()

        assert session == {"access_token": "user-token", "token_type": "bearer", "user": {"id": "U1"}}

    @pytest.mark.asyncio
    async def test_ping(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/auth/v1/health"
            return httpx.Response(200, json={"version": "v2", "name": "GoTrue"})

        client = make_client(handler)
        assert (await client.ping())["status"] == "up"
        await client.close()
