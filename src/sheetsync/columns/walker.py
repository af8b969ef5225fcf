"""PathWalker -- depth-first discovery of raw columns in a sample record.

The walker dispatches on the tag of each JSON node (see classify_node) and
threads an immutable WalkAccumulator through every recursive call instead of
mutating shared state. Keys are visited in the source's enumeration order,
so the same sample always produces the same raw column sequence.

Rules:
- Scalars and null become leaf columns.
- Objects: every own key is visited except ``_``-prefixed keys, metadata keys
  (IGNORED_KEYS) and function-like artifacts.
- Arrays of scalars are opaque leaf columns.
- Contact-like arrays (every item has ``value`` and a boolean ``primary``) are
  handed to the contact array resolver.
- Other arrays of objects: only the first item is walked, under ``{path}.0``
  with a "(First Item)" suffix. Remaining items are never inspected.
- The object under ``custom_fields`` is handed to the custom field resolver.
- Top-level objects and object arrays also get a column for their own key
  (e.g. ``org_id`` alongside ``org_id.name``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from src.sheetsync.columns.naming import display_name_for
from src.sheetsync.columns.resolvers import (
    CUSTOM_FIELDS_KEY,
    is_contact_array,
    resolve_contact_array,
    resolve_custom_fields,
)
from src.sheetsync.columns.schemas import ColumnKind, EntityType, NodeKind, RawColumn

# API metadata keys that never become columns.
IGNORED_KEYS: frozenset[str] = frozenset({
    "first_char",
    "im",
    "lm",
    "label",
    "labels",
    "visible_from",
    "in_visible_list",
})

_SCALAR_KINDS = (NodeKind.NULL, NodeKind.BOOL, NodeKind.NUMBER, NodeKind.STRING)


# ── Walk State ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WalkContext:
    """Read-only inputs shared by every step of one extraction."""

    field_map: Mapping[str, str] = field(default_factory=dict)
    entity_type: EntityType = EntityType.DEALS
    hash_min_length: int = 20


@dataclass(frozen=True)
class WalkAccumulator:
    """Columns found so far plus the custom field keys already resolved."""

    columns: tuple[RawColumn, ...] = ()
    processed_custom_fields: frozenset[str] = frozenset()

    def with_column(self, column: RawColumn) -> WalkAccumulator:
        return replace(self, columns=self.columns + (column,))

    def mark_processed(self, custom_field_key: str) -> WalkAccumulator:
        return replace(
            self,
            processed_custom_fields=self.processed_custom_fields | {custom_field_key},
        )


# ── Node Classification ─────────────────────────────────────────────────────


def classify_node(value: Any) -> NodeKind:
    """Tag a node of the sample tree.

    bool is checked before numbers since bool is an int subclass. Values
    that are neither JSON nor callable are treated as strings.
    """
    if value is None:
        return NodeKind.NULL
    if isinstance(value, bool):
        return NodeKind.BOOL
    if isinstance(value, (int, float)):
        return NodeKind.NUMBER
    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, Mapping):
        return NodeKind.OBJECT
    if isinstance(value, (list, tuple)):
        return NodeKind.ARRAY
    if callable(value):
        return NodeKind.OPAQUE
    return NodeKind.STRING


def _join(parent_path: str, key: str) -> str:
    return f"{parent_path}.{key}" if parent_path else key


def _parent_of(path: str) -> str | None:
    return path.rsplit(".", 1)[0] if "." in path else None


def _is_object_array(value: Any) -> bool:
    return (
        classify_node(value) is NodeKind.ARRAY
        and len(value) > 0
        and classify_node(value[0]) is NodeKind.OBJECT
        and not is_contact_array(value)
    )


def _leaf(path: str, name: str, kind: ColumnKind) -> RawColumn:
    parent = _parent_of(path)
    return RawColumn(
        key=path,
        name=name,
        kind=kind,
        is_nested=parent is not None,
        parent_key=parent,
    )


# ── Walk ────────────────────────────────────────────────────────────────────


def walk(
    node: Any,
    parent_path: str,
    parent_name: str,
    context: WalkContext,
    acc: WalkAccumulator | None = None,
) -> WalkAccumulator:
    """Walk ``node`` located at ``parent_path`` and return the grown accumulator.

    Args:
        node: The JSON node to visit.
        parent_path: Dot-path of ``node`` ("" for the record root).
        parent_name: Display name of ``node`` ("" for the record root).
        context: Field map, entity type and custom field settings.
        acc: Accumulator from the caller; a fresh one when omitted.

    Returns:
        A new accumulator containing every column found under ``node``.
    """
    if acc is None:
        acc = WalkAccumulator()

    kind = classify_node(node)

    if kind is NodeKind.OBJECT:
        if parent_path == CUSTOM_FIELDS_KEY:
            return resolve_custom_fields(node, context, acc, walk)
        return _walk_object(node, parent_path, parent_name, context, acc)

    if kind is NodeKind.ARRAY:
        return _walk_array(node, parent_path, parent_name, context, acc)

    if kind in _SCALAR_KINDS and parent_path:
        return acc.with_column(_leaf(parent_path, parent_name, ColumnKind.SCALAR))

    return acc


def _walk_object(
    node: Mapping[str, Any],
    parent_path: str,
    parent_name: str,
    context: WalkContext,
    acc: WalkAccumulator,
) -> WalkAccumulator:
    for raw_key, value in node.items():
        key = str(raw_key)
        if key.startswith("_") or key in IGNORED_KEYS:
            continue
        if classify_node(value) is NodeKind.OPAQUE:
            continue

        path = _join(parent_path, key)
        name = display_name_for(key, parent_name, context.field_map)

        # Top-level composites are selectable as a whole as well
        if not parent_path and path != CUSTOM_FIELDS_KEY:
            if classify_node(value) is NodeKind.OBJECT:
                acc = acc.with_column(_leaf(path, name, ColumnKind.OBJECT))
            elif _is_object_array(value):
                acc = acc.with_column(_leaf(path, name, ColumnKind.ARRAY))

        acc = walk(value, path, name, context, acc)

    return acc


def _walk_array(
    node: list[Any],
    path: str,
    name: str,
    context: WalkContext,
    acc: WalkAccumulator,
) -> WalkAccumulator:
    if is_contact_array(node):
        return resolve_contact_array(node, path, name, acc)

    if len(node) > 0 and classify_node(node[0]) is NodeKind.OBJECT:
        # Sampled, not enumerated: only the first item is inspected
        return walk(node[0], f"{path}.0", f"{name} (First Item)", context, acc)

    if path:
        return acc.with_column(_leaf(path, name, ColumnKind.ARRAY))
    return acc
