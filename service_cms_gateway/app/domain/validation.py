"""
Request validation and sanitization helpers.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from service_cms_gateway.app.domain.content_types import ContentType, content_model, required_fields

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]*>")
_SLUG = re.compile(r"^[a-z0-9_-]+$")


@dataclass
class RequiredCheck:
    valid: bool
    missing: List[str] = field(default_factory=list)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_required(data: Mapping[str, Any], fields: Iterable[str]) -> RequiredCheck:
    """Check that every field is present and not blank."""
    missing = [name for name in fields if _is_blank(data.get(name))]
    return RequiredCheck(valid=not missing, missing=missing)


def validate_max_lengths(data: Mapping[str, Any], max_lengths: Mapping[str, int]) -> List[str]:
    errors = []
    for name, limit in max_lengths.items():
        value = data.get(name)
        if isinstance(value, str) and len(value) > limit:
            errors.append(f"Field '{name}' must not exceed {limit} characters")
    return errors


def validate_slug(slug: Any) -> bool:
    return isinstance(slug, str) and bool(_SLUG.match(slug))


def sanitize_string(value: str) -> str:
    """Trim, then strip script blocks and any remaining markup."""
    cleaned = _SCRIPT_BLOCK.sub("", value.strip())
    return _TAG.sub("", cleaned)


def sanitize_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Sanitize every string value; drop nulls and stringify numbers."""
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, str):
            sanitized[key] = sanitize_string(value)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            sanitized[key] = str(value)
        else:
            sanitized[key] = value
    return sanitized


def _describe(content_type: ContentType, error: Mapping[str, Any]) -> str:
    name = ".".join(str(part) for part in error.get("loc", ())) or "payload"
    kind = error.get("type")
    if kind == "missing":
        return f"Field '{name}' is required"
    if kind == "extra_forbidden":
        return f"Field '{name}' is not supported for {content_type.alias}"
    if kind == "string_too_long":
        return f"Field '{name}' must not exceed {error['ctx']['max_length']} characters"
    if kind == "string_type":
        return f"Field '{name}' must be a string"
    return f"Field '{name}': {error.get('msg')}"


def validate_content(content_type: ContentType, data: Mapping[str, Any]) -> List[str]:
    """Collect every violation of the content type's schema.

    ``data`` holds the title plus snake_case custom fields and is checked
    against the content type's generated model. All problems are reported
    together so the caller can fix them in one round-trip.
    """
    required = validate_required(data, required_fields(content_type))
    errors = [f"Field '{name}' is required" for name in required.missing]

    try:
        content_model(content_type).model_validate(dict(data))
    except PydanticValidationError as exc:
        for error in exc.errors():
            loc = error.get("loc") or ()
            # Blank or null required fields are already reported above.
            if loc and loc[0] in required.missing:
                continue
            errors.append(_describe(content_type, error))
    return errors
