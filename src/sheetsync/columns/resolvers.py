"""Special-case resolvers for shapes the generic walk cannot label well.

- Contact arrays: lists of ``{value, label, primary}`` items (emails, phones)
  become one "Primary ..." column plus one column per distinct label.
- Custom fields: keys under ``custom_fields`` are opaque hash identifiers, so
  their names come from the field map or from the shape of the value, and
  object-valued fields (currency, date range, address, complex) get
  dedicated column layouts.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from src.sheetsync.columns.naming import format_basic_name, format_column_name
from src.sheetsync.columns.schemas import ColumnKind, RawColumn

if TYPE_CHECKING:
    from src.sheetsync.columns.walker import WalkAccumulator, WalkContext

CUSTOM_FIELDS_KEY = "custom_fields"

# Structured address parts, in the order their columns are emitted.
ADDRESS_COMPONENT_LABELS: dict[str, str] = {
    "street_number": "Street Number",
    "route": "Street",
    "subpremise": "Apartment/Suite",
    "sublocality": "District/Borough",
    "locality": "City",
    "admin_area_level_1": "State/Province",
    "admin_area_level_2": "County",
    "country": "Country",
    "postal_code": "ZIP/Postal Code",
}

WalkFn = Callable[..., "WalkAccumulator"]


# ── Contact Arrays ──────────────────────────────────────────────────────────


def is_contact_array(value: Any) -> bool:
    """True if every item is an object carrying ``value`` and a boolean ``primary``."""
    if not isinstance(value, (list, tuple)) or len(value) == 0:
        return False
    return all(
        isinstance(item, Mapping)
        and "value" in item
        and isinstance(item.get("primary"), bool)
        for item in value
    )


def resolve_contact_array(
    items: list[Mapping[str, Any]],
    path: str,
    name: str,
    acc: WalkAccumulator,
) -> WalkAccumulator:
    """Emit the primary column and one column per distinct label.

    Labels are lower-cased and deduplicated in first-seen order; items
    without a string label contribute nothing beyond the primary column.
    """
    acc = acc.with_column(RawColumn(
        key=f"{path}.0.value",
        name=f"Primary {name}",
        kind=ColumnKind.CONTACT_PRIMARY,
        is_nested=True,
        parent_key=path,
    ))

    seen: list[str] = []
    for item in items:
        label = item.get("label")
        if not isinstance(label, str) or not label.strip():
            continue
        normalized = label.strip().lower()
        if normalized in seen:
            continue
        seen.append(normalized)
        acc = acc.with_column(RawColumn(
            key=f"{path}.{normalized}",
            name=f"{name} {format_basic_name(normalized)}",
            kind=ColumnKind.CONTACT_LABEL,
            is_nested=True,
            parent_key=path,
        ))

    return acc


# ── Custom Fields ───────────────────────────────────────────────────────────


def _hash_pattern(min_length: int) -> re.Pattern[str]:
    return re.compile(rf"^[a-f0-9]{{{min_length},}}$", re.IGNORECASE)


def _has(value: Any, *keys: str) -> bool:
    return isinstance(value, Mapping) and all(k in value for k in keys)


def custom_field_label(
    key: str,
    value: Any,
    field_map: Mapping[str, str],
    hash_min_length: int = 20,
) -> str:
    """Display name for a custom field key.

    Priority: field map entry, then a generic label derived from the value's
    shape when the key is a hash identifier, then the formatted key.
    """
    if field_map.get(key):
        return field_map[key]

    if _hash_pattern(hash_min_length).match(key):
        if _has(value, "value", "currency"):
            return "Currency Field"
        if _has(value, "value", "formatted_address"):
            return "Address Field"
        if _has(value, "value", "until"):
            return "Date Range Field"
        return "Custom Field"

    return format_column_name(key)


def resolve_custom_fields(
    node: Mapping[str, Any],
    context: WalkContext,
    acc: WalkAccumulator,
    walk: WalkFn,
) -> WalkAccumulator:
    """Emit columns for every key directly under ``custom_fields``.

    Each key is resolved at most once per extraction; the accumulator
    remembers processed keys.

    Args:
        node: The ``custom_fields`` object.
        context: Walk context (field map, hash length).
        acc: Current accumulator.
        walk: The generic walker, used to expand complex values.
    """
    for raw_key, value in node.items():
        key = str(raw_key)
        if key in acc.processed_custom_fields or callable(value):
            continue
        acc = acc.mark_processed(key)

        path = f"{CUSTOM_FIELDS_KEY}.{key}"
        label = custom_field_label(key, value, context.field_map, context.hash_min_length)

        if not isinstance(value, Mapping):
            acc = acc.with_column(_custom_column(path, label))
        elif _has(value, "value", "currency"):
            acc = acc.with_column(_custom_column(path, f"{label} (Currency)"))
        elif _has(value, "value", "until"):
            acc = acc.with_column(_custom_column(path, f"{label} (Range)"))
        elif _has(value, "value", "formatted_address"):
            acc = _resolve_address(value, path, label, acc)
        else:
            acc = acc.with_column(_custom_column(path, f"{label} (Complex)"))
            acc = walk(value, path, label, context, acc)

    return acc


def _custom_column(path: str, name: str) -> RawColumn:
    return RawColumn(
        key=path,
        name=name,
        kind=ColumnKind.CUSTOM_FIELD,
        is_nested=True,
        parent_key=CUSTOM_FIELDS_KEY,
    )


def _resolve_address(
    value: Mapping[str, Any],
    path: str,
    label: str,
    acc: WalkAccumulator,
) -> WalkAccumulator:
    acc = acc.with_column(_custom_column(path, f"{label} (Address)"))
    acc = acc.with_column(RawColumn(
        key=f"{path}.formatted_address",
        name=f"{label} (Formatted Address)",
        kind=ColumnKind.CUSTOM_COMPONENT,
        is_nested=True,
        parent_key=path,
    ))
    for component, component_label in ADDRESS_COMPONENT_LABELS.items():
        if component not in value:
            continue
        acc = acc.with_column(RawColumn(
            key=f"{path}.{component}",
            name=f"{label} ({component_label})",
            kind=ColumnKind.CUSTOM_COMPONENT,
            is_nested=True,
            parent_key=path,
        ))
    return acc
