"""
Blog post orchestration.

Blog routes act with the caller's own CMS session token, so the CMS applies
its native capabilities; the gateway adds the contributor rules on top.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from shared.errors import ValidationError
from shared.logging import get_logger

from service_cms_gateway.app.adapters.wordpress_client import WordPressPage
from service_cms_gateway.app.auth.session import Identity, is_restricted
from service_cms_gateway.app.domain.content_service import RESTRICTED_STATUS, parse_item_id, require_fields
from service_cms_gateway.app.domain.field_translator import to_upstream_status, wrap_raw
from service_cms_gateway.app.domain.validation import sanitize_string

POSTS = "posts"


def normalize_categories(value: Any) -> List[int]:
    """Accept a list, a comma-separated string or a single number; drop junk."""
    if value is None:
        return []
    if isinstance(value, bool):
        return []
    if isinstance(value, (int, float)):
        candidates: Iterable[Any] = [value]
    elif isinstance(value, str):
        candidates = value.split(",")
    elif isinstance(value, (list, tuple)):
        candidates = value
    else:
        return []

    ids = []
    for candidate in candidates:
        try:
            ids.append(int(str(candidate).strip()))
        except ValueError:
            continue
    return ids


class PostsService:
    def __init__(self, cms_client, *, privileged_roles: Iterable[str] = ("administrator", "editor")):
        self.cms = cms_client
        self.privileged_roles = tuple(privileged_roles)
        self.logger = get_logger("gateway.posts_service")

    async def list_posts(self, params: Any, token: Optional[str] = None) -> WordPressPage:
        return await self.cms.list_items(POSTS, params, token=token)

    async def _resolve_tags(self, tags: Any, identity: Identity, restricted: bool) -> List[int]:
        """Map tag names to ids, creating missing tags for privileged callers."""
        if isinstance(tags, str):
            tags = [name for name in tags.split(",")]
        if not isinstance(tags, (list, tuple)):
            return []

        ids: List[int] = []
        for tag in tags:
            if isinstance(tag, int) and not isinstance(tag, bool):
                ids.append(tag)
                continue
            name = sanitize_string(str(tag))
            if not name:
                continue

            matches = await self.cms.search_tags(name, token=identity.token)
            exact = [m for m in matches if str(m.get("name", "")).lower() == name.lower()]
            match = (exact or matches or [None])[0]
            if match is not None:
                ids.append(match["id"])
            elif not restricted:
                created = await self.cms.create_tag(name, token=identity.token)
                ids.append(created["id"])
            else:
                self.logger.info("Unknown tag ignored for restricted caller", tag=name, user_id=identity.user_id)
        return ids

    async def _build_payload(self, identity: Identity, body: Mapping[str, Any]) -> Dict[str, Any]:
        restricted = is_restricted(identity, self.privileged_roles)
        payload = {key: value for key, value in body.items() if key != "tags"}

        if isinstance(payload.get("title"), str):
            payload["title"] = sanitize_string(payload["title"])
        for key in ("title", "content", "excerpt"):
            if key in payload:
                payload[key] = wrap_raw(payload[key])

        if "tags" in body and body["tags"]:
            payload["tags"] = await self._resolve_tags(body["tags"], identity, restricted)

        if "categories" in payload:
            payload["categories"] = normalize_categories(payload["categories"])

        if restricted:
            payload["status"] = RESTRICTED_STATUS
        elif "status" in payload:
            payload["status"] = to_upstream_status(payload["status"])
        return payload

    async def create_post(self, identity: Identity, body: Mapping[str, Any]) -> Dict[str, Any]:
        require_fields(body, ["title"])
        payload = await self._build_payload(identity, body)
        created = await self.cms.create_item(POSTS, payload, token=identity.token)
        self.logger.info("Post created", post_id=created.get("id"), status=payload.get("status"))
        return created

    async def update_post(self, identity: Identity, post_id: Any, body: Mapping[str, Any]) -> Dict[str, Any]:
        item_id = parse_item_id(post_id)
        payload = await self._build_payload(identity, body)
        if is_restricted(identity, self.privileged_roles):
            payload.pop("categories", None)
        updated = await self.cms.update_item(POSTS, item_id, payload, token=identity.token)
        self.logger.info("Post updated", post_id=item_id, status=payload.get("status"))
        return updated

    async def delete_post(self, identity: Identity, post_id: Any) -> Dict[str, Any]:
        item_id = parse_item_id(post_id)
        result = await self.cms.delete_item(POSTS, item_id, token=identity.token, force=True)
        self.logger.info("Post deleted", post_id=item_id)
        return result

    async def list_comments(self, post_id: Any) -> List[Dict[str, Any]]:
        return await self.cms.list_comments(parse_item_id(post_id))

    async def create_comment(self, identity: Identity, post_id: Any, body: Mapping[str, Any]) -> Dict[str, Any]:
        item_id = parse_item_id(post_id)
        content = body.get("content")
        if not isinstance(content, str) or not sanitize_string(content):
            raise ValidationError(
                "Comment content is required",
                errors=["Field 'content' is required"],
                code="MISSING_REQUIRED_FIELDS",
            )
        data = dict(body)
        data["content"] = sanitize_string(content)
        return await self.cms.create_comment(item_id, data, token=identity.token)

    async def toggle_like(self, identity: Identity, post_id: Any) -> Dict[str, Any]:
        result = await self.cms.toggle_like(parse_item_id(post_id), token=identity.token)
        return {"liked": result.get("liked"), "likesCount": result.get("likesCount")}

    async def list_terms(self, taxonomy: str) -> List[Dict[str, Any]]:
        return await self.cms.list_terms(taxonomy)
