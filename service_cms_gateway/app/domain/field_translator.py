"""
Translation between application field names and CMS custom-field names.

Application payloads use camelCase (``nilaiSejarah``); the CMS stores
snake_case custom fields (``nilai_sejarah``). The default rule covers most
names; ``FIELD_NAME_OVERRIDES`` lists the ones it would get wrong. Reverse
translation is for display only: names produced by the default rule do not
necessarily map back to the key the client sent.
"""

import re
from typing import Any, Dict, Mapping, Optional

OWNER_FIELD = "supabase_user_id"

FIELD_NAME_OVERRIDES: Dict[str, str] = {
    "koordinatGPS": "koordinat_gps",
    "linkYouTube": "link_youtube",
    "ownerIdentity": OWNER_FIELD,
}

_REVERSE_OVERRIDES: Dict[str, str] = {v: k for k, v in FIELD_NAME_OVERRIDES.items()}

_UPPER = re.compile(r"[A-Z]")
_SNAKE_SEGMENT = re.compile(r"_([a-z0-9])")

WRAPPED_FIELDS = ("title", "content", "excerpt")

# Application status -> CMS status
_STATUS_TO_UPSTREAM = {"published": "publish"}
_STATUS_FROM_UPSTREAM = {v: k for k, v in _STATUS_TO_UPSTREAM.items()}


def camel_to_snake(name: str) -> str:
    return _UPPER.sub(lambda m: f"_{m.group(0).lower()}", name)


def snake_to_camel(name: str) -> str:
    return _SNAKE_SEGMENT.sub(lambda m: m.group(1).upper(), name)


def upstream_name(name: str) -> str:
    return FIELD_NAME_OVERRIDES.get(name) or camel_to_snake(name)


def to_upstream(app_fields: Mapping[str, Any], owner_identity: Optional[str] = None) -> Dict[str, Any]:
    """Rename application fields to CMS names and stamp the owner."""
    upstream = {upstream_name(name): value for name, value in app_fields.items()}
    if owner_identity is not None:
        upstream[OWNER_FIELD] = owner_identity
    return upstream


def from_upstream(upstream_fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        _REVERSE_OVERRIDES.get(name) or snake_to_camel(name): value
        for name, value in upstream_fields.items()
    }


def wrap_raw(value: Any) -> Any:
    if isinstance(value, str):
        return {"raw": value}
    return value


def unwrap_rendered(value: Any) -> Any:
    if isinstance(value, Mapping):
        if value.get("raw") is not None:
            return value["raw"]
        return value.get("rendered")
    return value


def to_upstream_status(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    return _STATUS_TO_UPSTREAM.get(status, status)


def from_upstream_status(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    return _STATUS_FROM_UPSTREAM.get(status, status)


def build_item_payload(
    title: str,
    fields: Mapping[str, Any],
    status: str,
    owner: str,
    fields_key: str = "fields",
) -> Dict[str, Any]:
    """Canonical CMS write payload for a heritage item."""
    custom = dict(fields)
    custom[OWNER_FIELD] = owner
    return {
        "title": wrap_raw(title),
        "status": to_upstream_status(status),
        fields_key: custom,
    }


def extract_custom_fields(item: Mapping[str, Any]) -> Dict[str, Any]:
    """Custom fields from either plugin shape (``acf`` or ``fields``)."""
    for key in ("acf", "fields"):
        value = item.get(key)
        if isinstance(value, Mapping) and value:
            return dict(value)
    return {}


def item_owner(item: Mapping[str, Any]) -> Optional[str]:
    owner = extract_custom_fields(item).get(OWNER_FIELD)
    return str(owner) if owner not in (None, "") else None


def shape_item(item: Mapping[str, Any], content_type: Optional[str] = None) -> Dict[str, Any]:
    """CMS record -> application view."""
    custom = extract_custom_fields(item)
    owner = custom.pop(OWNER_FIELD, None)
    return {
        "id": item.get("id"),
        "title": unwrap_rendered(item.get("title")),
        "slug": item.get("slug"),
        "status": from_upstream_status(item.get("status")),
        "contentType": content_type or item.get("type"),
        "ownerIdentity": owner,
        "fields": from_upstream(custom),
        "date": item.get("date"),
        "modified": item.get("modified"),
        "link": item.get("link"),
    }
