"""
CMS gateway service for the Budaya Access Layer.
"""

import asyncio
import platform
from typing import Any, Dict, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import (
    AccessLayerException,
    AuthenticationError,
    AuthorizationError,
    ErrorKind,
    RateLimitError,
    ValidationError,
)

from service_cms_gateway.app.adapters.identity_client import IdentityClient
from service_cms_gateway.app.adapters.wordpress_client import WordPressClient
from service_cms_gateway.app.auth.session import (
    Identity,
    authenticate_bearer,
    authenticate_session,
    clear_session_cookie,
    extract_bearer_token,
    extract_session_token,
    set_session_cookie,
    shape_session_user,
)
from service_cms_gateway.app.domain.content_service import ContentService, require_fields
from service_cms_gateway.app.domain.posts_service import PostsService
from service_cms_gateway.app.domain.responses import success_response
from service_cms_gateway.app.state import GatewayState, build_state

SESSION_INVALID_MESSAGE = "Session is invalid or has expired."


class GatewayService(BaseService):
    """CMS gateway service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        state: Optional[GatewayState] = None,
        cms_client: Optional[WordPressClient] = None,
        identity_client: Optional[IdentityClient] = None,
    ):
        super().__init__("gateway", 8000, config=config)
        self.cms_client = cms_client or WordPressClient(
            self.config.wordpress_api_url,
            timeout=self.config.http_timeout_seconds,
            metrics=self.metrics,
        )
        self.identity_client = identity_client or IdentityClient(
            self.config.supabase_url,
            self.config.supabase_anon_key,
            timeout=self.config.http_timeout_seconds,
            metrics=self.metrics,
        )
        self.state = state or build_state(self.config, self.cms_client, self.metrics)

        self.content_service = ContentService(
            self.cms_client,
            self.state.token_cache,
            privileged_roles=self.config.privileged_roles,
            fields_key=self.config.cms_fields_key,
        )
        self.posts_service = PostsService(self.cms_client, privileged_roles=self.config.privileged_roles)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.cms_client.close()
            await self.identity_client.close()

        self._setup_gateway_routes()
        self._setup_content_routes()
        self._setup_posts_routes()
        self._setup_session_routes()
        self._setup_admin_routes()

    # BaseService hooks

    def _record_error(self, exc: AccessLayerException) -> None:
        self.state.health_monitor.record(exc)

    async def _check_dependencies(self) -> Dict[str, Dict[str, Any]]:
        wordpress, supabase = await asyncio.gather(self.cms_client.ping(), self.identity_client.ping())
        return {"wordpress": wordpress, "supabase": supabase}

    def _is_healthy(self) -> bool:
        return self.state.health_monitor.is_healthy()

    def _health_details(self) -> Dict[str, Any]:
        monitor = self.state.health_monitor
        return {
            "errors": {
                "last_hour": monitor.get_error_stats(3600),
                "overall_healthy": monitor.is_healthy(),
            }
        }

    # Request helpers

    def _enforce_rate_limit(self, subject: str, action: str) -> Dict[str, Any]:
        result = self.state.rate_limiter.check_rate_limit(subject, action)
        if not result["allowed"]:
            self.metrics.record_rate_limit_hit(action)
            rule = self.state.rate_limiter.rule_for(action)
            raise RateLimitError(
                rule.max_requests,
                rule.window_seconds,
                retry_after=result["reset_in_seconds"],
                context={"action": action},
            )
        return result

    def _set_rate_limit_headers(self, response: Response, rate_result: Dict[str, Any]) -> None:
        """Set standard rate limit headers on the response."""
        if not rate_result:
            return
        response.headers["X-RateLimit-Limit"] = str(rate_result.get("limit", ""))
        response.headers["X-RateLimit-Remaining"] = str(rate_result.get("remaining", 0))
        response.headers["X-RateLimit-Reset"] = str(rate_result.get("reset_in_seconds", 0))

    def _get_client_ip(self, request: Request) -> str:
        """Extract the client IP address from the request.

        Forwarding headers are honoured only when the direct peer is a
        configured trusted proxy. The address used is the right-most hop that
        is not itself a trusted proxy.
        """
        peer = request.client.host if request.client else "unknown"
        trusted = set(self.config.trusted_proxies)
        if peer not in trusted:
            return peer

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
            for hop in reversed(hops):
                if hop not in trusted:
                    return hop

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return peer

    async def _read_json(self, request: Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("Invalid JSON format", code="INVALID_JSON") from exc
        if not isinstance(body, dict):
            raise ValidationError("JSON body must be an object", code="INVALID_JSON")
        return body

    async def _authorized(self, request: Request, action: str):
        """Bearer authentication followed by the rate-limit check."""
        identity = await authenticate_bearer(request, self.identity_client)
        rate = self._enforce_rate_limit(identity.user_id, action)
        return identity, rate

    async def _session(self, request: Request, action: str):
        identity = await authenticate_session(request, self.cms_client, self.config.session_cookie_name)
        rate = self._enforce_rate_limit(identity.user_id, action)
        return identity, rate

    def _respond(self, rate: Dict[str, Any], data: Any, message: str, *, code: Optional[str] = None,
                 status_code: int = 200, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
        response = success_response(data, message, code=code, status_code=status_code, headers=headers)
        self._set_rate_limit_headers(response, rate)
        return response

    # Routes

    def _setup_gateway_routes(self):
        """Service metadata routes."""

        @self.app.get("/")
        async def root():
            return {
                "service": "gateway",
                "message": "Budaya Access Layer - CMS Gateway",
                "version": "1.0.0",
            }

    def _setup_content_routes(self):
        """Heritage content routes (identity-provider bearer token)."""

        @self.app.post("/api/items/create")
        async def create_item(request: Request):
            identity, rate = await self._authorized(request, "create")
            body = await self._read_json(request)
            item = await self.content_service.create(identity, body)
            return self._respond(rate, item, "Content item submitted for review", code="ITEM_CREATED",
                                 status_code=201)

        @self.app.post("/api/items/submit/{cpt_slug}")
        async def submit_item(cpt_slug: str, request: Request):
            identity, rate = await self._authorized(request, "create")
            body = await self._read_json(request)
            item = await self.content_service.create(identity, body, content_type_slug=cpt_slug)
            return self._respond(rate, item, "Content item submitted for review", code="ITEM_CREATED",
                                 status_code=201)

        @self.app.get("/api/items/get-one")
        async def get_item_for_edit(request: Request):
            identity, rate = await self._authorized(request, "default")
            params = request.query_params
            item = await self.content_service.get_for_edit(identity, params.get("slug"), params.get("id"))
            return self._respond(rate, item, "Content item retrieved")

        @self.app.post("/api/items/update")
        async def update_item(request: Request):
            identity, rate = await self._authorized(request, "update")
            body = await self._read_json(request)
            item = await self.content_service.update(identity, body)
            return self._respond(rate, item, "Content item updated", code="ITEM_UPDATED")

        @self.app.post("/api/items/delete")
        async def delete_item(request: Request):
            identity, rate = await self._authorized(request, "delete")
            body = await self._read_json(request)
            result = await self.content_service.delete(identity, body)
            return self._respond(rate, result, "Content item deleted", code="ITEM_DELETED")

        @self.app.get("/api/items/mine")
        async def list_my_items(request: Request):
            identity, rate = await self._authorized(request, "default")
            items = await self.content_service.list_mine(identity)
            return self._respond(rate, items, "Items retrieved")

        @self.app.get("/api/items/{cpt_slug}")
        async def list_items(cpt_slug: str, request: Request):
            rate = self._enforce_rate_limit(f"ip:{self._get_client_ip(request)}", "default")
            items, page = await self.content_service.list_public(cpt_slug, request.query_params)
            return self._respond(rate, items, "Items retrieved", headers=page.pagination_headers())

    def _setup_posts_routes(self):
        """Blog routes (CMS session cookie)."""

        @self.app.get("/api/posts")
        async def list_posts(request: Request):
            token = request.cookies.get(self.config.session_cookie_name)
            page = await self.posts_service.list_posts(request.query_params.multi_items(), token=token)
            return JSONResponse(content=page.items, headers=page.pagination_headers())

        @self.app.post("/api/posts")
        async def create_post(request: Request):
            identity, rate = await self._session(request, "create")
            body = await self._read_json(request)
            post = await self.posts_service.create_post(identity, body)
            return self._respond(rate, post, "Post created", code="POST_CREATED", status_code=201)

        @self.app.put("/api/posts/{post_id}")
        async def update_post(post_id: str, request: Request):
            identity, rate = await self._session(request, "update")
            body = await self._read_json(request)
            post = await self.posts_service.update_post(identity, post_id, body)
            return self._respond(rate, post, "Post updated", code="POST_UPDATED")

        @self.app.delete("/api/posts/{post_id}")
        async def delete_post(post_id: str, request: Request):
            identity, rate = await self._session(request, "delete")
            result = await self.posts_service.delete_post(identity, post_id)
            return self._respond(rate, result, "Post deleted successfully", code="POST_DELETED")

        @self.app.get("/api/posts/{post_id}/comments")
        async def list_comments(post_id: str):
            return await self.posts_service.list_comments(post_id)

        @self.app.post("/api/posts/{post_id}/comments")
        async def create_comment(post_id: str, request: Request):
            identity, rate = await self._session(request, "comment")
            body = await self._read_json(request)
            comment = await self.posts_service.create_comment(identity, post_id, body)
            return self._respond(rate, comment, "Comment created", code="COMMENT_CREATED", status_code=201)

        @self.app.post("/api/posts/{post_id}/like")
        async def toggle_like(post_id: str, request: Request):
            identity, rate = await self._session(request, "like")
            result = await self.posts_service.toggle_like(identity, post_id)
            return self._respond(rate, result, "Like toggled")

        @self.app.get("/api/categories")
        async def list_categories():
            return await self.posts_service.list_terms("categories")

        @self.app.get("/api/tags")
        async def list_tags():
            return await self.posts_service.list_terms("tags")

    def _setup_session_routes(self):
        """Login, logout, current identity and identity-provider auth routes."""

        @self.app.post("/api/login")
        async def login(request: Request):
            rate = self._enforce_rate_limit(f"ip:{self._get_client_ip(request)}", "auth")
            body = await self._read_json(request)
            require_fields(body, ["username", "password"])

            try:
                data = await self.cms_client.issue_token(body["username"], body["password"])
            except AccessLayerException as exc:
                if not _is_client_rejection(exc):
                    raise
                raise self._invalid_credentials(exc.message) from exc
            if not data.get("token"):
                raise self._invalid_credentials("token endpoint returned no token")

            user = {
                "id": data.get("user_id"),
                "email": data.get("user_email"),
                "displayName": data.get("user_display_name"),
                "nicename": data.get("user_nicename"),
            }
            response = self._respond(rate, {"user": user}, "Login successful", code="LOGIN_SUCCESS")
            set_session_cookie(response, data["token"], self.config)
            self.logger.info("Session created", user_id=user["id"])
            return response

        @self.app.post("/api/logout")
        async def logout():
            response = success_response(None, "Logout successful", code="LOGOUT_SUCCESS")
            clear_session_cookie(response, self.config)
            return response

        @self.app.get("/api/me")
        async def current_user(request: Request):
            token = extract_session_token(request, self.config.session_cookie_name)
            try:
                await self.cms_client.validate_token(token)
                user = await self.cms_client.get_current_user(token)
            except AccessLayerException as exc:
                if not _is_client_rejection(exc):
                    raise
                raise AuthenticationError(
                    f"Session validation failed: {exc.message}",
                    code="AUTH_INVALID_SESSION",
                    user_message=SESSION_INVALID_MESSAGE,
                ) from exc
            return success_response({"user": shape_session_user(user)}, "Session is valid")

        @self.app.post("/api/auth/sign-in")
        async def sign_in(request: Request):
            rate = self._enforce_rate_limit(f"ip:{self._get_client_ip(request)}", "auth")
            body = await self._read_json(request)
            require_fields(body, ["email", "password"])
            session = await self.identity_client.sign_in_with_password(body["email"], body["password"])
            return self._respond(rate, _session_view(session), "Signed in", code="SIGN_IN_SUCCESS")

        @self.app.post("/api/auth/sign-up")
        async def sign_up(request: Request):
            rate = self._enforce_rate_limit(f"ip:{self._get_client_ip(request)}", "auth")
            body = await self._read_json(request)
            require_fields(body, ["email", "password"])
            result = await self.identity_client.sign_up(body["email"], body["password"], body.get("metadata"))
            return self._respond(rate, _session_view(result), "Account created", code="SIGN_UP_SUCCESS",
                                 status_code=201)

        @self.app.post("/api/auth/sign-out")
        async def sign_out(request: Request):
            token = extract_bearer_token(request)
            await self.identity_client.sign_out(token)
            return success_response(None, "Signed out", code="SIGN_OUT_SUCCESS")

        @self.app.get("/api/auth/session")
        async def get_session(request: Request):
            token = extract_bearer_token(request)
            session = await self.identity_client.get_session(token)
            return success_response(_session_view(session), "Session is valid")

    def _setup_admin_routes(self):
        """Operational routes for privileged callers."""

        @self.app.get("/api/admin/metrics")
        async def admin_metrics(request: Request):
            identity, rate = await self._authorized(request, "default")
            self._require_privileged(identity)

            monitor = self.state.health_monitor
            data = {
                "errors": {
                    "lastHour": monitor.get_error_stats(3600),
                    "last24Hours": monitor.get_error_stats(24 * 3600),
                    "healthy": monitor.is_healthy(),
                    "recent": monitor.recent(20),
                },
                "rateLimits": self.state.rate_limiter.get_stats(),
                "tokenCache": self.state.token_cache.status(),
                "system": {
                    "service": self.service_name,
                    "environment": self.config.env,
                    "uptime_seconds": self._get_uptime(),
                    "python_version": platform.python_version(),
                },
            }
            return self._respond(rate, data, "Metrics retrieved")

    def _require_privileged(self, identity: Identity) -> None:
        if not identity.has_any_role(self.config.privileged_roles):
            raise AuthorizationError(
                "Admin metrics require a privileged role",
                context={"user_id": identity.user_id, "roles": list(identity.roles)},
            )

    @staticmethod
    def _invalid_credentials(reason: str) -> AuthenticationError:
        return AuthenticationError(
            f"Login rejected: {reason}",
            code="AUTH_INVALID_CREDENTIALS",
            user_message="Invalid username or password.",
        )


_CLIENT_REJECTION_KINDS = frozenset({
    ErrorKind.VALIDATION,
    ErrorKind.AUTHENTICATION,
    ErrorKind.AUTHORIZATION,
    ErrorKind.NOT_FOUND,
})


def _is_client_rejection(exc: AccessLayerException) -> bool:
    """True when the CMS refused the caller's credentials rather than failing."""
    if exc.kind in _CLIENT_REJECTION_KINDS:
        return True
    upstream_status = exc.context.get("upstream_status")
    if exc.kind != ErrorKind.UPSTREAM_CONTENT or exc.code == "INVALID_UPSTREAM_JSON":
        return False
    return upstream_status is not None and upstream_status < 500


def _session_view(session: Dict[str, Any]) -> Dict[str, Any]:
    """Trim an identity-provider session/user payload to what clients need."""
    user = session.get("user") if "user" in session else session
    view: Dict[str, Any] = {
        "user": {
            "id": user.get("id"),
            "email": user.get("email"),
            "metadata": user.get("user_metadata") or {},
        } if isinstance(user, dict) else None,
    }
    for key in ("access_token", "token_type", "expires_in", "refresh_token"):
        if session.get(key) is not None:
            view[key] = session[key]
    return view


def create_app(
    config: Optional[ServiceConfig] = None,
    state: Optional[GatewayState] = None,
    cms_client: Optional[WordPressClient] = None,
    identity_client: Optional[IdentityClient] = None,
):
    """Create FastAPI application."""
    service = GatewayService(config=config, state=state, cms_client=cms_client, identity_client=identity_client)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
