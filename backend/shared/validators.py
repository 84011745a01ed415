"""Validation helpers for origin settings (CORS and the WebSocket origin check)."""

import json
from typing import Any

from pydantic.fields import FieldInfo
from pydantic_settings import EnvSettingsSource

WILDCARD_ORIGIN = "*"
_ORIGIN_SCHEMES = ("http://", "https://")


def validate_origin(value: str) -> str:
    """Return a normalized origin (no trailing slash) or raise ValueError.

    An origin is ``*`` or a scheme plus host, e.g. ``https://promptify.app``.
    """
    origin = value.strip().rstrip("/")
    if origin == WILDCARD_ORIGIN:
        return origin
    if not origin.startswith(_ORIGIN_SCHEMES) or len(origin) <= len("https://"):
        raise ValueError(f"Invalid origin {value!r}: expected '*' or http(s)://host[:port]")
    if "/" in origin.split("://", 1)[1]:
        raise ValueError(f"Invalid origin {value!r}: must not contain a path")
    return origin


def parse_origin_list(value: str | list[str]) -> list[str]:
    """Parse an origin list from an env var or config value.

    Accepts a list, a JSON array string ('["a","b"]') or a comma-separated
    string ('a,b'). An empty value means "no origins". Every item must pass
    validate_origin.
    """
    if isinstance(value, list):
        items = value
    else:
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                items = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
                raise ValueError("JSON value must be an array of strings")
        else:
            items = [item for item in stripped.split(",") if item.strip()]
    return [validate_origin(item) for item in items]


ORIGIN_LIST_FIELDS = frozenset({"cors_origins"})


class OriginListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands origin-list fields to validators as raw strings.

    pydantic-settings JSON-decodes list fields before validators run, which
    would reject the comma-separated form.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in ORIGIN_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
