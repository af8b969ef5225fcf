"""Unit tests for contact array and custom field resolution."""

from __future__ import annotations

from src.sheetsync.columns.resolvers import (
    custom_field_label,
    is_contact_array,
    resolve_contact_array,
    resolve_custom_fields,
)
from src.sheetsync.columns.schemas import ColumnKind
from src.sheetsync.columns.walker import WalkAccumulator, WalkContext, walk

HASH_CURRENCY = "abcdef0123456789abcdef01"
HASH_MAPPED = "0123456789abcdef0123abcd"
HASH_RANGE = "fedcba9876543210fedcba98"
HASH_ADDRESS = "aaaabbbbccccddddeeeeffff"


def _contact(value: str, label: str | None, primary: bool = False) -> dict:
    item = {"value": value, "primary": primary}
    if label is not None:
        item["label"] = label
    return item


# ── Contact Arrays ─────────────────────────────────────────────────────────


class TestIsContactArray:
    def test_every_item_has_value_and_boolean_primary(self):
        assert is_contact_array([_contact("a", "work", True), _contact("b", "home")])

    def test_rejects_empty_and_scalars(self):
        assert not is_contact_array([])
        assert not is_contact_array(["a@b.c"])
        assert not is_contact_array("a@b.c")

    def test_rejects_non_boolean_primary(self):
        assert not is_contact_array([{"value": "a", "primary": 1}])

    def test_rejects_when_any_item_lacks_fields(self):
        assert not is_contact_array([_contact("a", "work", True), {"value": "b"}])


class TestResolveContactArray:
    def test_duplicate_labels_collapse(self):
        items = [
            _contact("a", "work", True),
            _contact("b", "work"),
            _contact("c", "home"),
        ]
        acc = resolve_contact_array(items, "email", "Email", WalkAccumulator())

        assert [(c.key, c.name) for c in acc.columns] == [
            ("email.0.value", "Primary Email"),
            ("email.work", "Email Work"),
            ("email.home", "Email Home"),
        ]
        assert acc.columns[0].kind is ColumnKind.CONTACT_PRIMARY
        assert all(c.parent_key == "email" and c.is_nested for c in acc.columns)

    def test_label_case_is_ignored(self):
        items = [_contact("a", "Work", True), _contact("b", "WORK")]
        acc = resolve_contact_array(items, "phone", "Phone", WalkAccumulator())

        assert [c.key for c in acc.columns] == ["phone.0.value", "phone.work"]
        assert acc.columns[1].name == "Phone Work"

    def test_items_without_label_only_yield_primary(self):
        items = [_contact("a", None, True), _contact("b", "")]
        acc = resolve_contact_array(items, "phone", "Phone", WalkAccumulator())

        assert [c.key for c in acc.columns] == ["phone.0.value"]


# ── Custom Fields ──────────────────────────────────────────────────────────


class TestCustomFieldLabel:
    def test_field_map_first(self):
        assert custom_field_label(HASH_CURRENCY, {"value": 1, "currency": "USD"}, {HASH_CURRENCY: "ARR"}) == "ARR"

    def test_hash_key_labels_by_shape(self):
        assert custom_field_label(HASH_CURRENCY, {"value": 1, "currency": "USD"}, {}) == "Currency Field"
        assert custom_field_label(HASH_ADDRESS, {"value": "x", "formatted_address": "x"}, {}) == "Address Field"
        assert custom_field_label(HASH_RANGE, {"value": "a", "until": "b"}, {}) == "Date Range Field"
        assert custom_field_label(HASH_MAPPED, "text", {}) == "Custom Field"

    def test_non_hash_key_is_formatted(self):
        assert custom_field_label("lead_source", "web", {}) == "Lead Source"
        assert custom_field_label("abc123", "web", {}) == "Abc123"

    def test_hash_length_is_configurable(self):
        assert custom_field_label("abcdef12", "x", {}, hash_min_length=8) == "Custom Field"
        assert custom_field_label("abcdef12", "x", {}) == "Abcdef12"


class TestResolveCustomFields:
    def _resolve(self, node: dict, field_map: dict | None = None) -> WalkAccumulator:
        return walk({"custom_fields": node}, "", "", WalkContext(field_map=field_map or {}))

    def test_every_shape(self):
        acc = self._resolve(
            {
                HASH_CURRENCY: {"value": 100, "currency": "USD"},
                HASH_MAPPED: "North",
                HASH_RANGE: {"value": "2024-01-01", "until": "2024-02-01"},
                HASH_ADDRESS: {
                    "value": "1 Main St",
                    "formatted_address": "1 Main St, Springfield",
                    "locality": "Springfield",
                    "postal_code": "12345",
                    "subpremise": "4B",
                },
                "short_key": {"foo": 1, "bar": {"baz": 2}},
            },
            field_map={HASH_MAPPED: "Region"},
        )

        address = f"custom_fields.{HASH_ADDRESS}"
        assert [(c.key, c.name) for c in acc.columns] == [
            (f"custom_fields.{HASH_CURRENCY}", "Currency Field (Currency)"),
            (f"custom_fields.{HASH_MAPPED}", "Region"),
            (f"custom_fields.{HASH_RANGE}", "Date Range Field (Range)"),
            (address, "Address Field (Address)"),
            (f"{address}.formatted_address", "Address Field (Formatted Address)"),
            (f"{address}.subpremise", "Address Field (Apartment/Suite)"),
            (f"{address}.locality", "Address Field (City)"),
            (f"{address}.postal_code", "Address Field (ZIP/Postal Code)"),
            ("custom_fields.short_key", "Short Key (Complex)"),
            ("custom_fields.short_key.foo", "Short Key Foo"),
            ("custom_fields.short_key.bar.baz", "Short Key Bar Baz"),
        ]

    def test_top_level_custom_columns_nest_under_custom_fields(self):
        acc = self._resolve({"region": "North"})

        column = acc.columns[0]
        assert column.parent_key == "custom_fields"
        assert column.is_nested is True
        assert column.kind is ColumnKind.CUSTOM_FIELD

    def test_each_key_is_resolved_once(self):
        node = {"region": "North", HASH_CURRENCY: {"value": 1, "currency": "USD"}}
        context = WalkContext()
        first = resolve_custom_fields(node, context, WalkAccumulator(), walk)
        second = resolve_custom_fields(node, context, first, walk)

        assert second.columns == first.columns
        assert second.processed_custom_fields == frozenset({"region", HASH_CURRENCY})
