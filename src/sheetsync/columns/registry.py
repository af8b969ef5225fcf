"""ColumnRegistry -- dedup, suppression, classification and ordering.

register() turns the walker's raw columns into the final column list:

1. Collect by key (last write for a key wins, first-seen position kept)
2. Suppress redundant columns in favour of a preferred sibling
   (SUPPRESSION_RULES, evaluated against the collected key set)
3. Classify survivors as read-only (against the surviving key set only)
4. Sort by the picker's total order (see ColumnRegistry.sort_key)
5. Drop any remaining duplicate key
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

import structlog

from src.sheetsync.columns.read_only import is_read_only
from src.sheetsync.columns.schemas import Column, ColumnKind, EntityType, RawColumn

logger = structlog.get_logger(__name__)


# ── Ordering Configuration ──────────────────────────────────────────────────

DEFAULT_PRIMARY_FIELDS: tuple[str, ...] = (
    "title",
    "status",
    "value",
    "currency",
    "org_id",
    "person_id",
    "pipeline_id",
    "stage_id",
)

PRIMARY_FIELDS: dict[EntityType, tuple[str, ...]] = {
    EntityType.DEALS: ("owner_id",) + DEFAULT_PRIMARY_FIELDS,
    EntityType.PERSONS: ("owner_id", "org_id"),
    EntityType.ORGANIZATIONS: ("owner_id", "address", "web"),
    EntityType.ACTIVITIES: (
        "subject",
        "type",
        "due_date",
        "due_time",
        "duration",
        "done",
        "deal_id",
        "person_id",
        "org_id",
        "note",
    ),
    EntityType.LEADS: ("owner_id", "title", "value", "person_id", "organization_id"),
    EntityType.PRODUCTS: ("owner_id", "code", "description", "unit", "prices"),
}

CONTACT_ROOTS: frozenset[str] = frozenset({"email", "phone", "emails", "phones"})

# Path roots that refer to the entity being viewed.
SELF_PREFIXES: dict[EntityType, tuple[str, ...]] = {
    EntityType.ORGANIZATIONS: ("org", "organization"),
    EntityType.PERSONS: ("person",),
    EntityType.DEALS: ("deal",),
    EntityType.ACTIVITIES: ("activity",),
    EntityType.LEADS: ("lead",),
    EntityType.PRODUCTS: ("product",),
}


# ── Suppression Rules ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class SuppressionRule:
    """Drop a column when ``applies(key, keys, entity_type)`` is true."""

    name: str
    applies: Callable[[str, frozenset[str], EntityType], bool]


def _under(key: str, root: str) -> bool:
    return key == root or key.startswith(f"{root}.")


def _org_duplicate(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    return "org_id" in keys and (_under(key, "org") or _under(key, "organization"))


def _object_with_id_sibling(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    # ``owner`` next to ``owner_id``
    return "." not in key and not key.endswith("_id") and f"{key}_id" in keys


def _nested_with_id_sibling(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    # ``person.name`` next to ``person_id.name``
    if "." not in key:
        return False
    root, rest = key.split(".", 1)
    return not root.endswith("_id") and f"{root}_id.{rest}" in keys


def _formatted_address(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    return "formatted_address" in key and "address" in keys and key != "address"


def _denormalized_name(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    return key.endswith("_name") and f"{key[:-5]}_id" in keys


def _self_reference(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    return any(_under(key, root) for root in SELF_PREFIXES.get(entity, ()))


def _legacy_timestamp(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    return key in ("add_time", "update_time") and bool(keys & {"created_at", "updated_at"})


def _formatted_variant(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    # ``formatted_value`` next to ``value``
    return key.startswith("formatted_") and key[len("formatted_"):] in keys


def _nested_id_with_id_sibling(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    # ``owner.id`` next to ``owner_id``
    return key.endswith(".id") and f"{key[:-3]}_id" in keys


def _contact_composite(key: str, keys: frozenset[str], entity: EntityType) -> bool:
    # Bare ``email`` when ``email.work`` and friends exist
    return key in ("email", "phone") and any(k.startswith(f"{key}.") for k in keys)


SUPPRESSION_RULES: tuple[SuppressionRule, ...] = (
    SuppressionRule("org_duplicate", _org_duplicate),
    SuppressionRule("object_with_id_sibling", _object_with_id_sibling),
    SuppressionRule("nested_with_id_sibling", _nested_with_id_sibling),
    SuppressionRule("formatted_address", _formatted_address),
    SuppressionRule("denormalized_name", _denormalized_name),
    SuppressionRule("self_reference", _self_reference),
    SuppressionRule("legacy_timestamp", _legacy_timestamp),
    SuppressionRule("formatted_variant", _formatted_variant),
    SuppressionRule("nested_id_with_id_sibling", _nested_id_with_id_sibling),
    SuppressionRule("contact_composite", _contact_composite),
)


# ── Registry ────────────────────────────────────────────────────────────────


class ColumnRegistry:
    """Produces the final, unique, ordered column list for one entity type.

    Args:
        entity_type: Entity the sheet is bound to.
        primary_fields: Override for the entity's "primary fields" ordering.
    """

    def __init__(
        self,
        entity_type: EntityType,
        primary_fields: Sequence[str] | None = None,
    ) -> None:
        self._entity_type = entity_type
        if primary_fields is None:
            primary_fields = PRIMARY_FIELDS.get(entity_type, DEFAULT_PRIMARY_FIELDS)
        self._primary_index = {key: i for i, key in enumerate(primary_fields)}

    def register(self, raw_columns: Iterable[RawColumn]) -> list[Column]:
        """Dedup, suppress, classify and sort raw columns.

        Duplicate keys never raise; they are resolved.
        """
        collected: dict[str, RawColumn] = {}
        for raw in raw_columns:
            collected[raw.key] = raw

        keys = frozenset(collected)
        survivors = [
            raw for raw in collected.values()
            if self.suppressed_by(raw.key, keys) is None
        ]
        survivor_keys = frozenset(raw.key for raw in survivors)

        contact_parents = {
            raw.parent_key
            for raw in survivors
            if raw.kind in (ColumnKind.CONTACT_PRIMARY, ColumnKind.CONTACT_LABEL)
        }

        columns = [
            Column(
                key=raw.key,
                display_name=raw.name,
                is_nested=raw.is_nested,
                parent_key=raw.parent_key,
                read_only=is_read_only(raw.key, self._entity_type, survivor_keys),
            )
            for raw in survivors
        ]
        columns.sort(key=lambda c: self.sort_key(c, contact_parents))

        result = _dedupe(columns)
        logger.debug(
            "columns.registered",
            entity_type=self._entity_type.value,
            raw=len(collected),
            suppressed=len(collected) - len(survivors),
            final=len(result),
        )
        return result

    def suppressed_by(self, key: str, keys: frozenset[str]) -> str | None:
        """Name of the first suppression rule dropping ``key``, if any."""
        for rule in SUPPRESSION_RULES:
            if rule.applies(key, keys, self._entity_type):
                return rule.name
        return None

    def sort_key(self, column: Column, contact_parents: set[str | None] | None = None) -> tuple:
        """Total order used by the picker.

        id, name, the entity's primary fields in their fixed order, then
        top-level before nested, contact groups before other nested groups,
        nested columns grouped by parent key, then by display name
        (case-insensitive first). The key itself breaks any remaining tie.
        """
        name_order = (column.display_name.casefold(), column.display_name, column.key)

        if column.key == "id":
            return (0, 0, 0, 0, "") + name_order
        if column.key == "name":
            return (1, 0, 0, 0, "") + name_order
        if column.key in self._primary_index:
            return (2, self._primary_index[column.key], 0, 0, "") + name_order

        if not column.is_nested:
            return (3, 0, 0, 0, "") + name_order

        parent = column.parent_key or ""
        is_contact = (
            parent.split(".", 1)[0] in CONTACT_ROOTS
            or (contact_parents is not None and column.parent_key in contact_parents)
        )
        return (3, 0, 1, 0 if is_contact else 1, parent) + name_order


def _dedupe(columns: list[Column]) -> list[Column]:
    seen: set[str] = set()
    unique: list[Column] = []
    for column in columns:
        if column.key in seen:
            continue
        seen.add(column.key)
        unique.append(column)
    return unique
