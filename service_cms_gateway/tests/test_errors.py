"""
Unit tests for the shared error taxonomy.
"""

import httpx
import pytest

from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ErrorKind,
    InternalError,
    NetworkError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    UpstreamAuthError,
    UpstreamContentError,
    ValidationError,
    from_exception,
    from_invalid_json,
    from_provider_error,
    from_transport_error,
    from_upstream_response,
    is_retryable,
)


class TestErrorKinds:
    """Default status, retryability and user message per kind."""

    @pytest.mark.parametrize("exc, status, retryable", [
        (ValidationError(), 400, False),
        (AuthenticationError(), 401, False),
        (AuthorizationError(), 403, False),
        (NotFoundError(), 404, False),
        (RateLimitError(), 429, True),
        (NetworkError("down"), 502, True),
        (InternalError(), 500, False),
    ])
    def test_defaults(self, exc, status, retryable):
        assert exc.status_code == status
        assert exc.retryable is retryable

    def test_expected_kinds_are_not_critical(self):
        assert ValidationError().expected
        assert RateLimitError().expected
        assert not UpstreamContentError("boom").expected
        assert not InternalError().expected

    def test_response_hides_internal_message(self):
        exc = UpstreamContentError("db exploded", upstream_status=500, context={"response_data": {"trace": "x"}})

        body = exc.to_response().model_dump(exclude_none=True)

        assert body["success"] is False
        assert body["type"] == "UPSTREAM_CONTENT_ERROR"
        assert body["code"] == "WORDPRESS_API_ERROR"
        assert body["retryable"] is True
        assert "db exploded" not in body["message"]
        assert "detail" not in body
        assert "context" not in body

    def test_debug_response_includes_detail(self):
        exc = UpstreamContentError("db exploded", upstream_status=500)

        body = exc.to_response(debug=True).model_dump(exclude_none=True)

        assert "db exploded" in body["detail"]
        assert body["context"]["upstream_status"] == 500

    def test_validation_errors_are_listed(self):
        exc = ValidationError("bad", errors=["Field 'title' is required"])

        body = exc.to_response().model_dump(exclude_none=True)

        assert body["errors"] == ["Field 'title' is required"]
        assert body["code"] == "VALIDATION_FAILED"

    def test_rate_limit_message(self):
        exc = RateLimitError(10, 60, retry_after=30)
        assert exc.message == "Rate limit exceeded: 10 requests per 60s"
        assert exc.retry_after == 30


class TestFromUpstreamResponse:

    def test_not_found(self):
        assert isinstance(from_upstream_response(404, {"code": "rest_post_invalid_id"}), NotFoundError)

    def test_unauthorized(self):
        assert isinstance(from_upstream_response(401, {}), AuthenticationError)

    def test_forbidden(self):
        assert isinstance(from_upstream_response(403, {"message": "nope"}), AuthorizationError)

    def test_server_error_is_retryable(self):
        exc = from_upstream_response(503, {"message": "maintenance"})
        assert isinstance(exc, UpstreamContentError)
        assert exc.retryable is True
        assert exc.context["response_data"] == {"message": "maintenance"}

    def test_client_error_is_not_retryable(self):
        exc = from_upstream_response(400, {"message": "Invalid parameter(s): status"})
        assert isinstance(exc, UpstreamContentError)
        assert exc.retryable is False
        assert "Invalid parameter(s)" in exc.message


class TestFromProviderError:

    def test_invalid_credentials(self):
        err = ProviderError.from_body(400, {"error": "invalid_grant", "error_description": "Invalid login credentials"})

        exc = from_provider_error(err)

        assert isinstance(exc, AuthenticationError)
        assert exc.code == "AUTH_INVALID_USER"

    def test_bad_jwt(self):
        err = ProviderError.from_body(401, {"code": 401, "error_code": "bad_jwt", "msg": "invalid JWT"})

        exc = from_provider_error(err)

        assert isinstance(exc, AuthenticationError)
        assert err.message == "invalid JWT"

    def test_unprocessable_is_validation(self):
        err = ProviderError.from_body(422, {"error_code": "weak_password", "msg": "Password should be at least 6 characters"})

        exc = from_provider_error(err)

        assert isinstance(exc, ValidationError)
        assert exc.errors == ["Password should be at least 6 characters"]

    def test_too_many_requests(self):
        assert isinstance(from_provider_error(ProviderError("slow down", status=429)), RateLimitError)

    def test_outage_is_retryable(self):
        exc = from_provider_error(ProviderError("bad gateway", status=502))
        assert isinstance(exc, UpstreamAuthError)
        assert exc.retryable is True

    def test_unknown_client_error_is_not_retryable(self):
        exc = from_provider_error(ProviderError("conflict", status=409))
        assert isinstance(exc, UpstreamAuthError)
        assert exc.retryable is False


class TestTransportAndParsing:

    def test_timeout(self):
        exc = from_transport_error(httpx.ReadTimeout("slow"), "wordpress")
        assert exc.kind == ErrorKind.NETWORK
        assert exc.code == "UPSTREAM_TIMEOUT"
        assert exc.retryable is True

    def test_connect_error(self):
        exc = from_transport_error(httpx.ConnectError("refused"), "identity")
        assert exc.code == "NETWORK_ERROR"
        assert exc.context["upstream"] == "identity"

    def test_invalid_json(self):
        assert isinstance(from_invalid_json("wordpress", 200), UpstreamContentError)
        assert isinstance(from_invalid_json("identity", 200), UpstreamAuthError)
        assert from_invalid_json("wordpress", 200).retryable is False

    def test_from_exception_wraps_unknown(self):
        exc = from_exception(KeyError("missing"))
        assert isinstance(exc, InternalError)
        assert exc.context["original_error"] == "KeyError"
        assert not is_retryable(exc)

    def test_from_exception_passes_through(self):
        original = NotFoundError("Post", 3)
        assert from_exception(original) is original
