"""
Tests for the gateway service surface: root, health, metrics and admin routes.
"""

from shared.errors import InternalError, ValidationError

from service_cms_gateway.app.main import create_app


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "gateway"
    assert data["version"] == "1.0.0"


def test_create_app(config, state, cms_client, identity_client):
    app = create_app(config=config, state=state, cms_client=cms_client, identity_client=identity_client)
    paths = {route.path for route in app.routes}
    assert {"/health", "/metrics", "/api/items/create", "/api/posts", "/api/login"} <= paths


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "gateway"
    assert data["status"] == "healthy"
    assert data["services"]["wordpress"]["status"] == "up"
    assert data["services"]["supabase"]["status"] == "up"
    assert data["errors"]["last_hour"]["total"] == 0
    assert data["errors"]["overall_healthy"] is True
    assert "uptime_seconds" in data


def test_health_check_dependency_down(client, cms_client):
    cms_client.ping.return_value = {"status": "down", "responseTime": 5.0, "error": "connection refused"}

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_health_check_error_threshold(client, state):
    for _ in range(10):
        state.health_monitor.record(InternalError("boom"))

    response = client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["errors"]["overall_healthy"] is False
    assert data["errors"]["last_hour"]["criticalErrors"] == 10


def test_metrics_endpoint(client):
    """Test metrics endpoint."""
    client.get("/")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]
    assert "http_requests_total" in response.text


def test_request_id_is_echoed(client):
    response = client.get("/", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_is_generated(client):
    response = client.get("/")
    assert response.headers["X-Request-ID"]


def test_admin_metrics_requires_privileged_role(client, auth_headers):
    response = client.get("/api/admin/metrics", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["type"] == "AUTHORIZATION_ERROR"


def test_admin_metrics(client, identity_client, state, auth_headers):
    identity_client.get_user.return_value = {
        "id": "U9",
        "email": "admin@example.com",
        "app_metadata": {"role": "administrator"},
    }
    state.health_monitor.record(ValidationError("bad input"))

    response = client.get("/api/admin/metrics", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["errors"]["lastHour"]["total"] == 1
    assert data["errors"]["recent"][0]["kind"] == "VALIDATION_ERROR"
    assert data["rateLimits"]["rules"]["create"] == {"max_requests": 10, "window_seconds": 60}
    assert data["tokenCache"] == {"cached": False, "expires_in_seconds": 0, "exchanges": 0}
    assert data["system"]["service"] == "gateway"
    assert data["system"]["environment"] == "test"
