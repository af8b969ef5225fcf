"""NameFormatter -- turns raw CRM keys into human column labels.

Resolution order for a single key:
1. The entity's field-name map (names configured in the CRM)
2. NAME_OVERRIDES for well-known system keys
3. Generic formatting: snake_case / dot.path -> Title Case words

Nested columns join the parent's formatted name with the child's:
``"{Parent} {Child}"``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

# Friendlier labels for well-known system keys when the CRM field map
# does not provide one.
NAME_OVERRIDES: dict[str, str] = {
    "id": "ID",
    "owner_id": "Owner",
    "org_id": "Organization",
    "person_id": "Contact",
    "user_id": "User",
    "creator_user_id": "Creator",
    "stage_id": "Pipeline Stage",
    "pipeline_id": "Pipeline",
    "expected_close_date": "Expected Close Date",
    "won_time": "Won Date",
    "lost_time": "Lost Date",
    "close_time": "Closed Date",
    "add_time": "Created Date",
    "update_time": "Last Updated",
    "visible_to": "Visibility",
    "owner_name": "Owner Name",
    "org_name": "Organization Name",
    "person_name": "Contact Name",
    "cc_email": "CC Email",
    "next_activity_id": "Next Activity ID",
    "last_activity_id": "Last Activity ID",
}

_WORD_START = re.compile(r"\b\w")


def format_basic_name(name: str) -> str:
    """Replace ``_`` and ``.`` with spaces and capitalize each word."""
    formatted = name.replace("_", " ").replace(".", " ")
    formatted = " ".join(formatted.split())
    return _WORD_START.sub(lambda m: m.group(0).upper(), formatted)


def format_column_name(key: Any, field_map: Mapping[str, str] | None = None) -> str:
    """Format a raw key (or dot-path) as a display label.

    Args:
        key: Raw field key, e.g. ``"expected_close_date"`` or ``"org_id.name"``.
        field_map: Optional ``{raw_key: display_name}`` map from the CRM.

    Returns:
        Display label. Empty string for an empty key.
    """
    if key is None or key == "":
        return ""
    key = str(key)

    if field_map and field_map.get(key):
        return field_map[key]

    if "." in key:
        parts = [p for p in key.split(".") if p]
        return " ".join(format_column_name(p, field_map) for p in parts)

    if key in NAME_OVERRIDES:
        return NAME_OVERRIDES[key]

    return format_basic_name(key)


def display_name_for(
    key: str,
    parent_name: str = "",
    field_map: Mapping[str, str] | None = None,
) -> str:
    """Display name for ``key`` nested under a parent labelled ``parent_name``."""
    child = format_column_name(key, field_map)
    if parent_name:
        return f"{parent_name} {child}"
    return child


def build_field_map(definitions: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Build ``{key: name}`` from CRM field definitions (``[{key, name, ...}]``).

    Definitions missing either a key or a name are ignored; later
    definitions override earlier ones for the same key.
    """
    field_map: dict[str, str] = {}
    for definition in definitions:
        key = definition.get("key")
        name = definition.get("name")
        if key and name:
            field_map[str(key)] = str(name)
    return field_map
