"""ReadOnlyClassifier -- ordered rule table deciding which columns are editable.

Rules are evaluated top to bottom and the first matching rule decides.
A column that matches no rule is editable. The table is applied by the
ColumnRegistry after suppression, against the surviving key set only.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from src.sheetsync.columns.schemas import EntityType

# ── Field Lists ─────────────────────────────────────────────────────────────

ALWAYS_EDITABLE: frozenset[str] = frozenset({"name", "first_name", "last_name", "label_ids"})

SYSTEM_FIELDS: frozenset[str] = frozenset({
    "id",
    "creator_user_id",
    "creator_id",
    "user_id",
    "is_deleted",
    "cc_email",
    "origin",
    "origin_id",
    "source_name",
    "first_char",
    "active_flag",
    "next_activity_id",
    "last_activity_id",
    "next_activity_date",
    "next_activity_type",
    "next_activity_duration",
    "next_activity_note",
    "stage_order_nr",
})

TIMESTAMP_FIELDS: frozenset[str] = frozenset({
    "add_time",
    "update_time",
    "stage_change_time",
    "lost_time",
    "close_time",
    "won_time",
    "local_close_date",
    "local_won_date",
    "local_lost_date",
    "marked_as_done_time",
    "last_activity_date",
    "next_activity_time",
    "rotten_time",
    "last_incoming_mail_time",
    "last_outgoing_mail_time",
    "archive_time",
})

DERIVED_FIELDS: frozenset[str] = frozenset({
    "formatted_value",
    "weighted_value",
    "formatted_weighted_value",
    "weighted_value_currency",
})

ENTITY_READ_ONLY_FIELDS: dict[EntityType, frozenset[str]] = {
    EntityType.DEALS: frozenset({"acv", "arr", "mrr"}),
    EntityType.PERSONS: frozenset({"has_pic", "pic_hash"}),
    EntityType.ORGANIZATIONS: frozenset({"has_pic", "pic_hash"}),
    EntityType.LEADS: frozenset({"was_seen"}),
    EntityType.PRODUCTS: frozenset({"selectable"}),
    EntityType.ACTIVITIES: frozenset({
        "company_id",
        "assigned_to_user_id",
        "conference_meeting_client",
        "conference_meeting_url",
        "conference_meeting_id",
    }),
}

# Path roots (with any ``_id`` suffix removed) that belong to another entity.
ENTITY_PREFIXES: dict[str, EntityType] = {
    "org": EntityType.ORGANIZATIONS,
    "organization": EntityType.ORGANIZATIONS,
    "person": EntityType.PERSONS,
    "deal": EntityType.DEALS,
    "activity": EntityType.ACTIVITIES,
    "product": EntityType.PRODUCTS,
    "lead": EntityType.LEADS,
}

# Nested data about CRM users is never editable from a sheet.
USER_PREFIXES: frozenset[str] = frozenset({
    "owner",
    "user",
    "creator",
    "creator_user",
    "assigned_to_user",
})

_PATTERN_FIELDS = re.compile(r"(_flag$|_hash$|has_pic|^cc_)")
_CUSTOM_ADDRESS_PART = re.compile(r"^custom_fields\.[^.]+\.[^.]+$")


# ── Rule Table ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RuleContext:
    entity_type: EntityType
    keys: frozenset[str]


@dataclass(frozen=True)
class ReadOnlyRule:
    """One row of the rule table."""

    name: str
    matches: Callable[[str, RuleContext], bool]
    read_only: bool = True


def _root(key: str) -> str:
    root = key.split(".", 1)[0]
    return root[:-3] if root.endswith("_id") else root


def _is_denormalized_name(key: str, ctx: RuleContext) -> bool:
    return key.endswith("_name") and f"{key[:-5]}_id" in ctx.keys


def _is_cross_entity(key: str, ctx: RuleContext) -> bool:
    if "." not in key:
        return False
    root = _root(key)
    if root in USER_PREFIXES:
        return True
    owner = ENTITY_PREFIXES.get(root)
    return owner is not None and owner != ctx.entity_type


READ_ONLY_RULES: tuple[ReadOnlyRule, ...] = (
    ReadOnlyRule("always_editable", lambda k, c: k in ALWAYS_EDITABLE, read_only=False),
    ReadOnlyRule("system_field", lambda k, c: k in SYSTEM_FIELDS),
    ReadOnlyRule("timestamp", lambda k, c: k in TIMESTAMP_FIELDS),
    ReadOnlyRule("count", lambda k, c: k.endswith("_count")),
    ReadOnlyRule(
        "derived",
        lambda k, c: k in DERIVED_FIELDS or (k.startswith("formatted_") and "address" not in k),
    ),
    ReadOnlyRule("denormalized_name", _is_denormalized_name),
    ReadOnlyRule("cross_entity", _is_cross_entity),
    ReadOnlyRule(
        "entity_specific",
        lambda k, c: k in ENTITY_READ_ONLY_FIELDS.get(c.entity_type, frozenset()),
    ),
    ReadOnlyRule("pattern", lambda k, c: bool(_PATTERN_FIELDS.search(k))),
    ReadOnlyRule("custom_field_component", lambda k, c: bool(_CUSTOM_ADDRESS_PART.match(k))),
)


def matching_rule(
    key: str,
    entity_type: EntityType,
    keys: frozenset[str] = frozenset(),
) -> ReadOnlyRule | None:
    """Return the first rule matching ``key``, or None."""
    ctx = RuleContext(entity_type=entity_type, keys=keys)
    for rule in READ_ONLY_RULES:
        if rule.matches(key, ctx):
            return rule
    return None


def is_read_only(
    key: str,
    entity_type: EntityType,
    keys: frozenset[str] = frozenset(),
) -> bool:
    """Classify a column key.

    Args:
        key: Column dot-path.
        entity_type: Entity the sheet is bound to.
        keys: Keys of all surviving columns (needed by the ``*_name`` rule).

    Returns:
        True when the column must not be written back to the CRM.
    """
    rule = matching_rule(key, entity_type, keys)
    return rule.read_only if rule is not None else False
