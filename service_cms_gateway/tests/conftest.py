"""
Shared fixtures for CMS gateway tests.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from shared.config import get_config
from shared.retry import RetryConfig

from service_cms_gateway.app.adapters.identity_client import IdentityClient
from service_cms_gateway.app.adapters.wordpress_client import WordPressClient
from service_cms_gateway.app.auth.token_cache import ServiceTokenCache
from service_cms_gateway.app.domain.health import HealthMonitor
from service_cms_gateway.app.main import GatewayService
from service_cms_gateway.app.ratelimit.sliding_window import SlidingWindowRateLimiter
from service_cms_gateway.app.state import GatewayState

SERVICE_TOKEN = "svc-token"


@pytest.fixture
def config():
    """Gateway configuration with a service account and no .env influence."""
    return get_config(
        "gateway",
        8000,
        env="test",
        debug=False,
        wordpress_api_url="http://cms.test/wp-json",
        wordpress_api_user="svc-user",
        wordpress_api_pass="svc-pass",
        supabase_url="http://identity.test",
        supabase_anon_key="anon-key",
    )


@pytest.fixture
def cms_client():
    """WordPress client double; every coroutine method is an AsyncMock."""
    client = AsyncMock(spec=WordPressClient)
    client.issue_token.return_value = {"token": SERVICE_TOKEN}
    client.ping.return_value = {"status": "up", "responseTime": 1.0}
    return client


@pytest.fixture
def identity_client():
    client = AsyncMock(spec=IdentityClient)
    client.get_user.return_value = {"id": "U1", "email": "u1@example.com", "app_metadata": {}}
    client.ping.return_value = {"status": "up", "responseTime": 1.0}
    return client


@pytest.fixture
def rate_limiter():
    return SlidingWindowRateLimiter()


@pytest.fixture
def state(cms_client, rate_limiter):
    return GatewayState(
        token_cache=ServiceTokenCache(
            cms_client,
            "svc-user",
            "svc-pass",
            retry_config=RetryConfig(max_attempts=1, base_delay=0, jitter=False),
        ),
        rate_limiter=rate_limiter,
        health_monitor=HealthMonitor(100),
    )


@pytest.fixture
def gateway(config, state, cms_client, identity_client):
    return GatewayService(config=config, state=state, cms_client=cms_client, identity_client=identity_client)


@pytest.fixture
def client(gateway):
    return TestClient(gateway.app)


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer user-token"}


@pytest.fixture
def session_headers():
    return {"Cookie": "auth_token=session-jwt"}
