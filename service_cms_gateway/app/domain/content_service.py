"""
Heritage content orchestration.

Route handlers authenticate the caller, enforce the rate limit and parse the
body; this service runs the remaining steps in order: structural checks,
ownership verification against the stored item, sanitization and schema
validation, translation with role rules, and the single upstream write.
Every CMS call here uses the gateway's service credential, so ownership is
enforced only by the ``supabase_user_id`` custom field.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    UpstreamContentError,
    ValidationError,
)
from shared.logging import get_logger

from service_cms_gateway.app.adapters.wordpress_client import WordPressPage
from service_cms_gateway.app.auth.session import Identity, is_restricted
from service_cms_gateway.app.auth.token_cache import SERVICE_AUTH_FAILED
from service_cms_gateway.app.domain.content_types import ContentType
from service_cms_gateway.app.domain.field_translator import (
    OWNER_FIELD,
    build_item_payload,
    from_upstream_status,
    item_owner,
    shape_item,
    to_upstream,
)
from service_cms_gateway.app.domain.validation import sanitize_payload, validate_content, validate_slug

ITEM_STATUSES = ("draft", "pending", "published", "private")
RESTRICTED_STATUS = "pending"

# Body keys that steer the operation rather than being custom fields.
CONTROL_KEYS = frozenset({"cptSlug", "postId", "userId", "status", "title"})

PUBLIC_LIST_PARAMS = ("per_page", "page", "search", "orderby", "order", "status", "_fields", "_embed")


def _missing(body: Mapping[str, Any], names: Iterable[str]) -> List[str]:
    return [name for name in names if body.get(name) in (None, "")]


def require_fields(body: Mapping[str, Any], names: Iterable[str]) -> None:
    missing = _missing(body, names)
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            errors=[f"Field '{name}' is required" for name in missing],
            code="MISSING_REQUIRED_FIELDS",
        )


def parse_item_id(value: Any) -> int:
    try:
        item_id = int(value)
    except (TypeError, ValueError):
        item_id = 0
    if item_id <= 0:
        raise ValidationError(
            f"Invalid item id: {value!r}",
            errors=["Field 'postId' must be a positive integer"],
            code="INVALID_POST_ID",
        )
    return item_id


def resolve_content_type(slug: Any) -> ContentType:
    if not validate_slug(slug):
        raise ValidationError(
            f"Invalid content type format: {slug!r}",
            errors=["Field 'cptSlug' has an invalid format"],
            code="INVALID_CPT_SLUG",
        )
    return ContentType.from_slug(slug)


class ContentService:
    """Create, read-for-edit, update, delete and list heritage items."""

    def __init__(
        self,
        cms_client,
        token_cache,
        *,
        privileged_roles: Iterable[str] = ("administrator", "editor"),
        fields_key: str = "fields",
    ):
        self.cms = cms_client
        self.token_cache = token_cache
        self.privileged_roles = tuple(privileged_roles)
        self.fields_key = fields_key
        self.logger = get_logger("gateway.content_service")

    async def _service_call(self, operation, *args, **kwargs):
        """Run a CMS call with the service credential.

        A 401 here means the cached credential went stale, not that the caller
        is unauthenticated.
        """
        token = await self.token_cache.get_token()
        try:
            return await operation(*args, token=token, **kwargs)
        except AuthenticationError as exc:
            self.token_cache.invalidate(token)
            raise UpstreamContentError(
                f"service credential rejected: {exc.message}",
                upstream_status=401,
                retryable=True,
                code=SERVICE_AUTH_FAILED,
            ) from exc

    async def _fetch_owned(self, content_type: ContentType, item_id: int, identity: Identity) -> Dict[str, Any]:
        try:
            item = await self._service_call(self.cms.get_item, content_type.value, item_id, context="edit")
        except NotFoundError as exc:
            raise NotFoundError(content_type.alias, item_id) from exc

        owner = item_owner(item)
        if owner != identity.user_id:
            self.logger.warning(
                "Ownership check failed",
                content_type=content_type.value,
                item_id=item_id,
                user_id=identity.user_id,
            )
            raise AuthorizationError(
                f"Caller {identity.user_id} does not own {content_type.value}/{item_id}",
                context={"item_id": item_id, "content_type": content_type.value},
            )
        return item

    def _prepare_fields(self, content_type: ContentType, body: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """Sanitize, translate and validate title plus custom fields."""
        raw = {key: value for key, value in body.items() if key not in CONTROL_KEYS}
        raw["title"] = body.get("title")
        sanitized = sanitize_payload(raw)

        title = sanitized.pop("title", None)
        fields = to_upstream(sanitized)
        # The owner is stamped server-side; a client value is discarded, not rejected.
        fields.pop(OWNER_FIELD, None)

        errors = validate_content(content_type, {"title": title, **fields})
        if errors:
            raise ValidationError(
                f"{content_type.value} payload failed validation",
                errors=errors,
                context={"content_type": content_type.value},
            )
        return title, fields

    def _resolve_status(self, identity: Identity, requested: Any, fallback: str) -> str:
        if is_restricted(identity, self.privileged_roles):
            if requested not in (None, RESTRICTED_STATUS):
                self.logger.info(
                    "Status override dropped for restricted caller",
                    user_id=identity.user_id,
                    requested=requested,
                )
            return RESTRICTED_STATUS

        if requested is None:
            return fallback
        if requested not in ITEM_STATUSES:
            raise ValidationError(
                f"Unsupported status: {requested!r}",
                errors=[f"Field 'status' must be one of: {', '.join(ITEM_STATUSES)}"],
            )
        return requested

    def _check_caller(self, identity: Identity, body: Mapping[str, Any]) -> None:
        claimed = body.get("userId")
        if claimed is not None and str(claimed) != identity.user_id:
            raise AuthorizationError("User ID mismatch", context={"claimed": claimed})

    async def create(self, identity: Identity, body: Mapping[str, Any],
                     content_type_slug: Optional[str] = None) -> Dict[str, Any]:
        slug = content_type_slug or body.get("cptSlug")
        if not content_type_slug:
            require_fields(body, ["cptSlug"])
        content_type = resolve_content_type(slug)
        self._check_caller(identity, body)

        title, fields = self._prepare_fields(content_type, body)
        status = self._resolve_status(identity, body.get("status"), RESTRICTED_STATUS)
        payload = build_item_payload(title, fields, status, identity.user_id, self.fields_key)

        created = await self._service_call(self.cms.create_item, content_type.value, payload)
        self.logger.info(
            "Content item created",
            content_type=content_type.value,
            item_id=created.get("id"),
            status=status,
        )
        return shape_item(created, content_type.alias)

    async def get_for_edit(self, identity: Identity, slug: Any, item_id: Any) -> Dict[str, Any]:
        require_fields({"slug": slug, "id": item_id}, ["slug", "id"])
        content_type = resolve_content_type(slug)
        item = await self._fetch_owned(content_type, parse_item_id(item_id), identity)
        return shape_item(item, content_type.alias)

    async def update(self, identity: Identity, body: Mapping[str, Any]) -> Dict[str, Any]:
        require_fields(body, ["postId", "cptSlug", "title"])
        item_id = parse_item_id(body.get("postId"))
        content_type = resolve_content_type(body.get("cptSlug"))
        self._check_caller(identity, body)

        current = await self._fetch_owned(content_type, item_id, identity)

        title, fields = self._prepare_fields(content_type, body)
        current_status = from_upstream_status(current.get("status")) or RESTRICTED_STATUS
        status = self._resolve_status(identity, body.get("status"), current_status)
        payload = build_item_payload(title, fields, status, identity.user_id, self.fields_key)

        updated = await self._service_call(self.cms.update_item, content_type.value, item_id, payload)
        self.logger.info("Content item updated", content_type=content_type.value, item_id=item_id, status=status)
        return shape_item(updated, content_type.alias)

    async def delete(self, identity: Identity, body: Mapping[str, Any]) -> Dict[str, Any]:
        require_fields(body, ["postId", "cptSlug"])
        item_id = parse_item_id(body.get("postId"))
        content_type = resolve_content_type(body.get("cptSlug"))

        await self._fetch_owned(content_type, item_id, identity)
        result = await self._service_call(self.cms.delete_item, content_type.value, item_id)
        self.logger.info("Content item deleted", content_type=content_type.value, item_id=item_id)
        return {
            "id": item_id,
            "contentType": content_type.alias,
            "deleted": True,
            "status": from_upstream_status(result.get("status")) if isinstance(result, dict) else None,
        }

    async def list_mine(self, identity: Identity) -> List[Dict[str, Any]]:
        """Items owned by the caller across every content type."""
        params = {"status": "publish,pending,draft", "context": "edit", "per_page": 100}
        pages = await asyncio.gather(*[
            self._service_call(self.cms.list_items, content_type.value, params)
            for content_type in ContentType
        ])

        mine = []
        for content_type, page in zip(ContentType, pages):
            for item in page.items:
                if item_owner(item) == identity.user_id:
                    mine.append(shape_item(item, content_type.alias))
        return mine

    async def list_public(self, slug: str, query: Mapping[str, Any]) -> Tuple[List[Dict[str, Any]], WordPressPage]:
        content_type = resolve_content_type(slug)
        params = {name: query[name] for name in PUBLIC_LIST_PARAMS if query.get(name) not in (None, "")}
        page = await self.cms.list_items(content_type.value, params)
        return [shape_item(item, content_type.alias) for item in page.items], page
