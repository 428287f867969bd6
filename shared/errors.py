"""
Shared error handling for the Budaya access gateway.

Every failure that crosses the gateway boundary is an ``AccessLayerException``
tagged with one ``ErrorKind``. The kind fixes the default HTTP status, the
retryable flag and the generic message shown to callers; the internal message
and context stay server-side unless the service runs in debug mode.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Closed set of error kinds surfaced by the gateway."""

    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    NOT_FOUND = "NOT_FOUND_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    UPSTREAM_CONTENT = "UPSTREAM_CONTENT_ERROR"
    UPSTREAM_AUTH = "UPSTREAM_AUTH_ERROR"
    NETWORK = "NETWORK_ERROR"
    INTERNAL = "INTERNAL_ERROR"


@dataclass(frozen=True)
class KindProfile:
    status_code: int
    retryable: bool
    code: str
    user_message: str


KIND_PROFILES: Dict[ErrorKind, KindProfile] = {
    ErrorKind.VALIDATION: KindProfile(
        400, False, "VALIDATION_FAILED", "Please check your input and try again."
    ),
    ErrorKind.AUTHENTICATION: KindProfile(
        401, False, "AUTH_REQUIRED", "Please log in to continue."
    ),
    ErrorKind.AUTHORIZATION: KindProfile(
        403, False, "INSUFFICIENT_PERMISSIONS", "You do not have permission to perform this action."
    ),
    ErrorKind.NOT_FOUND: KindProfile(
        404, False, "NOT_FOUND", "The requested item could not be found."
    ),
    ErrorKind.RATE_LIMIT: KindProfile(
        429, True, "RATE_LIMIT_EXCEEDED", "Too many requests. Please try again later."
    ),
    ErrorKind.UPSTREAM_CONTENT: KindProfile(
        502, False, "WORDPRESS_API_ERROR",
        "There was an issue with the content management system. Please try again.",
    ),
    ErrorKind.UPSTREAM_AUTH: KindProfile(
        502, False, "IDENTITY_PROVIDER_ERROR",
        "There was an issue with the authentication service. Please try again.",
    ),
    ErrorKind.NETWORK: KindProfile(
        502, True, "NETWORK_ERROR", "A network error occurred. Please try again."
    ),
    ErrorKind.INTERNAL: KindProfile(
        500, False, "INTERNAL_ERROR", "An unexpected error occurred. Please try again."
    ),
}

# Expected control-flow outcomes; never logged as critical.
EXPECTED_KINDS = frozenset({
    ErrorKind.VALIDATION,
    ErrorKind.AUTHENTICATION,
    ErrorKind.AUTHORIZATION,
    ErrorKind.NOT_FOUND,
    ErrorKind.RATE_LIMIT,
})

# GoTrue error codes that mean "the caller's credentials are wrong".
PROVIDER_AUTH_CODES = frozenset({
    "invalid_grant",
    "invalid_credentials",
    "bad_jwt",
    "no_authorization",
    "session_not_found",
    "session_expired",
    "user_not_found",
    "email_not_confirmed",
})


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ErrorRecord:
    """Entry kept by the health monitor's ring buffer."""

    kind: ErrorKind
    message: str
    status_code: int
    retryable: bool
    timestamp: float = field(default_factory=time.time)
    context: Dict[str, Any] = field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Standard error response format."""

    success: bool = False
    message: str
    code: str
    type: str
    timestamp: str
    retryable: bool
    errors: Optional[List[str]] = None
    detail: Optional[str] = None
    context: Optional[Dict[str, Any]] = None


class AccessLayerException(Exception):
    """Base exception for the gateway."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        errors: Optional[List[str]] = None,
    ):
        profile = KIND_PROFILES[self.kind]
        self.message = message or profile.user_message
        self.code = code or profile.code
        self.status_code = status_code or profile.status_code
        self.retryable = profile.retryable if retryable is None else retryable
        self.user_message = user_message or profile.user_message
        self.context = context or {}
        self.errors = errors
        self.timestamp = utc_timestamp()
        super().__init__(self.message)

    @property
    def expected(self) -> bool:
        return self.kind in EXPECTED_KINDS

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            kind=self.kind,
            message=self.message,
            status_code=self.status_code,
            retryable=self.retryable,
            context=dict(self.context),
        )

    def to_response(self, debug: bool = False) -> ErrorResponse:
        """Convert to error response; internal details only in debug mode."""
        response = ErrorResponse(
            message=self.user_message,
            code=self.code,
            type=self.kind.value,
            timestamp=self.timestamp,
            retryable=self.retryable,
            errors=self.errors,
        )
        if debug:
            response.detail = self.message
            response.context = self.context
        return response

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(AccessLayerException):
    """Request payload failed validation."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[List[str]] = None,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        user_message = "Please check your input and try again."
        if errors:
            user_message = "Validation failed. Please fix the listed fields and try again."
        super().__init__(message, code=code, errors=errors, context=context, user_message=user_message)


class AuthenticationError(AccessLayerException):
    """Caller could not be authenticated."""

    kind = ErrorKind.AUTHENTICATION

    def __init__(
        self,
        message: str = "Authentication required",
        *,
        code: Optional[str] = None,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, user_message=user_message, context=context)


class AuthorizationError(AccessLayerException):
    """Caller is authenticated but not allowed to perform the action."""

    kind = ErrorKind.AUTHORIZATION

    def __init__(
        self,
        message: str = "Insufficient permissions",
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, context=context)


class NotFoundError(AccessLayerException):
    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[Any] = None,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        suffix = f" with id '{resource_id}'" if resource_id is not None else ""
        ctx = {"resource": resource, "id": resource_id}
        ctx.update(context or {})
        super().__init__(f"{resource}{suffix} not found", code=code, context=ctx)


class RateLimitError(AccessLayerException):
    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        limit: Optional[int] = None,
        window_seconds: Optional[float] = None,
        *,
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if limit is not None and window_seconds is not None:
            message = f"Rate limit exceeded: {limit} requests per {window_seconds:g}s"
        else:
            message = "Rate limit exceeded"
        ctx = {"limit": limit, "window_seconds": window_seconds, "retry_after": retry_after}
        ctx.update(context or {})
        self.retry_after = retry_after
        super().__init__(message, context=ctx)


class UpstreamContentError(AccessLayerException):
    """The CMS failed or answered with an error."""

    kind = ErrorKind.UPSTREAM_CONTENT

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        retryable: Optional[bool] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = {"upstream_status": upstream_status}
        ctx.update(context or {})
        if retryable is None:
            retryable = upstream_status is None or upstream_status >= 500
        super().__init__(f"WordPress API Error: {message}", code=code, retryable=retryable, context=ctx)


class UpstreamAuthError(AccessLayerException):
    """The identity provider failed or answered with an error."""

    kind = ErrorKind.UPSTREAM_AUTH

    def __init__(
        self,
        message: str,
        *,
        upstream_status: Optional[int] = None,
        retryable: Optional[bool] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = {"upstream_status": upstream_status}
        ctx.update(context or {})
        if retryable is None:
            retryable = upstream_status is None or upstream_status >= 500
        super().__init__(f"Identity provider error: {message}", code=code, retryable=retryable, context=ctx)


class NetworkError(AccessLayerException):
    kind = ErrorKind.NETWORK

    def __init__(self, message: str, *, code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, context=context)


class InternalError(AccessLayerException):
    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = "Internal server error", *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context)


class ProviderError(Exception):
    """Raw error reported by the identity provider's auth API."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None,
                 body: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.body = body

    @classmethod
    def from_body(cls, status: int, body: Any) -> "ProviderError":
        """Build from a GoTrue error body (old and new error shapes)."""
        if isinstance(body, Mapping):
            code = body.get("error_code") or body.get("error")
            message = (
                body.get("msg")
                or body.get("error_description")
                or body.get("message")
                or code
                or f"HTTP {status}"
            )
            return cls(str(message), status=status, code=code, body=body)
        return cls(f"HTTP {status}", status=status, body=body)


def _upstream_message(status_code: int, body: Any) -> str:
    if isinstance(body, Mapping):
        message = body.get("message") or body.get("code")
        if message:
            return str(message)
    return f"HTTP {status_code}"


def from_upstream_response(status_code: int, body: Any = None,
                           context: Optional[Dict[str, Any]] = None) -> AccessLayerException:
    """Map a CMS error response onto the taxonomy."""
    message = _upstream_message(status_code, body)
    ctx = {"upstream_status": status_code, "response_data": body}
    ctx.update(context or {})

    if status_code == 404:
        return NotFoundError(context=ctx)
    if status_code == 401:
        return AuthenticationError(f"WordPress rejected credentials: {message}", context=ctx)
    if status_code == 403:
        return AuthorizationError(f"WordPress denied access: {message}", context=ctx)
    return UpstreamContentError(
        message,
        upstream_status=status_code,
        retryable=status_code >= 500,
        context=ctx,
    )


def from_provider_error(err: ProviderError,
                        context: Optional[Dict[str, Any]] = None) -> AccessLayerException:
    """Map an identity-provider error onto the taxonomy."""
    status = err.status
    ctx = {"upstream_status": status, "provider_code": err.code}
    ctx.update(context or {})

    if status in (401, 403, 404) or (status == 400 and err.code in PROVIDER_AUTH_CODES):
        return AuthenticationError(
            f"Identity provider rejected credentials: {err.message}",
            code="AUTH_INVALID_USER",
            context=ctx,
        )
    if status in (400, 422):
        return ValidationError(err.message, errors=[err.message], code="PROVIDER_VALIDATION_FAILED", context=ctx)
    if status == 429:
        return RateLimitError(context=ctx)
    if status is None or status >= 500:
        return UpstreamAuthError(err.message, upstream_status=status, retryable=True, context=ctx)
    return UpstreamAuthError(err.message, upstream_status=status, retryable=False, context=ctx)


def from_transport_error(exc: httpx.HTTPError, upstream: str) -> NetworkError:
    """Classify httpx transport failures (timeouts, refused connections)."""
    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(
            f"{upstream} request timed out",
            code="UPSTREAM_TIMEOUT",
            context={"upstream": upstream, "error": str(exc)},
        )
    return NetworkError(
        f"{upstream} request failed: {exc}",
        context={"upstream": upstream, "error": str(exc)},
    )


def from_invalid_json(upstream: str, status_code: int) -> AccessLayerException:
    """An upstream answered with a body that is not JSON."""
    message = f"invalid JSON in response (HTTP {status_code})"
    if upstream == "identity":
        return UpstreamAuthError(message, upstream_status=status_code, retryable=False, code="INVALID_UPSTREAM_JSON")
    return UpstreamContentError(message, upstream_status=status_code, retryable=False, code="INVALID_UPSTREAM_JSON")


def from_exception(exc: BaseException) -> AccessLayerException:
    """Wrap anything that is not already part of the taxonomy."""
    if isinstance(exc, AccessLayerException):
        return exc
    return InternalError(str(exc) or type(exc).__name__, context={"original_error": type(exc).__name__})


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, AccessLayerException) and exc.retryable
