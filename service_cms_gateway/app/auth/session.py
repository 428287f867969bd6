"""
Caller authentication for gateway routes.

Heritage content routes take a bearer token issued by the identity provider.
Blog routes take the ``auth_token`` session cookie, which holds a CMS JWT
and is forwarded to the CMS unchanged.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from fastapi import Request, Response

from shared.config import BaseConfig
from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger, set_user_context

logger = get_logger("gateway.session")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller resolved by an upstream."""

    user_id: str
    email: Optional[str] = None
    roles: Tuple[str, ...] = ()
    provider: str = "identity"
    token: str = field(default="", repr=False)

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(role in self.roles for role in roles)


def is_restricted(identity: Identity, privileged_roles: Iterable[str]) -> bool:
    """Callers without a privileged role get contributor treatment."""
    return not identity.has_any_role(privileged_roles)


def _missing_token(message: str) -> AuthenticationError:
    return AuthenticationError(
        message,
        code="AUTH_MISSING_TOKEN",
        user_message="Authentication token required.",
    )


def extract_bearer_token(request: Request) -> str:
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise _missing_token("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _missing_token("Authorization header is not a bearer token")
    return token.strip()


def extract_session_token(request: Request, cookie_name: str) -> str:
    token = request.cookies.get(cookie_name)
    if not token:
        raise _missing_token(f"Missing session cookie '{cookie_name}'")
    return token


def _provider_roles(user: Mapping[str, Any]) -> Tuple[str, ...]:
    metadata = user.get("app_metadata") or {}
    roles = metadata.get("roles")
    if isinstance(roles, (list, tuple)):
        return tuple(str(role) for role in roles)
    role = metadata.get("role")
    return (str(role),) if role else ()


async def authenticate_bearer(request: Request, identity_client) -> Identity:
    """Validate the bearer token against the identity provider."""
    token = extract_bearer_token(request)
    user = await identity_client.get_user(token)

    user_id = user.get("id") if isinstance(user, dict) else None
    if not user_id:
        raise AuthenticationError(
            "Identity provider returned no user for token",
            code="AUTH_INVALID_USER",
            user_message="Invalid authentication token.",
        )

    identity = Identity(
        user_id=str(user_id),
        email=user.get("email"),
        roles=_provider_roles(user),
        provider="identity",
        token=token,
    )
    set_user_context(identity.user_id)
    return identity


async def authenticate_session(request: Request, wordpress_client, cookie_name: str) -> Identity:
    """Resolve the session cookie through the CMS ``users/me`` endpoint."""
    token = extract_session_token(request, cookie_name)
    try:
        user = await wordpress_client.get_current_user(token)
    except (AuthenticationError, AuthorizationError) as exc:
        raise AuthenticationError(
            f"CMS rejected session token: {exc.message}",
            code="AUTH_INVALID_SESSION",
            user_message="Session is invalid or has expired.",
        ) from exc

    user_id = user.get("id") if isinstance(user, dict) else None
    if user_id is None or user_id == "":
        raise AuthenticationError(
            "CMS returned no user for session token",
            code="AUTH_INVALID_SESSION",
            user_message="Session is invalid or has expired.",
        )

    identity = Identity(
        user_id=str(user_id),
        email=user.get("email"),
        roles=tuple(user.get("roles") or ()),
        provider="wordpress",
        token=token,
    )
    set_user_context(identity.user_id)
    return identity


def shape_session_user(user: Mapping[str, Any]) -> Dict[str, Any]:
    """Profile view of a CMS ``users/me?context=edit`` record."""
    avatars = user.get("avatar_urls") or {}
    return {
        "id": user.get("id"),
        "username": user.get("slug"),
        "email": user.get("email"),
        "displayName": user.get("name"),
        "firstName": user.get("first_name"),
        "lastName": user.get("last_name"),
        "avatar": avatars.get("96"),
        "roles": user.get("roles") or [],
    }


def set_session_cookie(response: Response, token: str, config: BaseConfig) -> None:
    response.set_cookie(
        key=config.session_cookie_name,
        value=token,
        max_age=config.session_max_age_seconds,
        path="/",
        httponly=True,
        secure=not config.is_local,
        samesite="lax",
    )


def clear_session_cookie(response: Response, config: BaseConfig) -> None:
    response.set_cookie(
        key=config.session_cookie_name,
        value="",
        max_age=-1,
        path="/",
        httponly=True,
        secure=not config.is_local,
        samesite="lax",
    )
    logger.info("Session cookie cleared")
