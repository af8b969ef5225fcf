"""Unit tests for the read-only rule table."""

from __future__ import annotations

import pytest

from src.sheetsync.columns.read_only import READ_ONLY_RULES, is_read_only, matching_rule
from src.sheetsync.columns.schemas import EntityType

DEALS = EntityType.DEALS
PERSONS = EntityType.PERSONS


class TestRuleTable:
    def test_first_rule_is_the_editable_allow_list(self):
        assert READ_ONLY_RULES[0].name == "always_editable"
        assert READ_ONLY_RULES[0].read_only is False

    @pytest.mark.parametrize(
        ("key", "rule"),
        [
            ("name", "always_editable"),
            ("id", "system_field"),
            ("update_time", "timestamp"),
            ("products_count", "count"),
            ("weighted_value", "derived"),
            ("formatted_value", "derived"),
            ("owner_id.name", "cross_entity"),
            ("some_flag", "pattern"),
            ("custom_fields.abc.locality", "custom_field_component"),
        ],
    )
    def test_matching_rule(self, key, rule):
        assert matching_rule(key, DEALS).name == rule

    def test_no_rule_for_plain_field(self):
        assert matching_rule("title", DEALS) is None
        assert is_read_only("title", DEALS) is False


class TestIsReadOnly:
    def test_system_and_timestamps(self):
        assert is_read_only("id", DEALS)
        assert is_read_only("add_time", DEALS)
        assert is_read_only("active_flag", DEALS)

    def test_names_stay_editable(self):
        assert not is_read_only("name", PERSONS)
        assert not is_read_only("first_name", PERSONS)
        assert not is_read_only("label_ids", DEALS)

    def test_formatted_address_is_not_derived(self):
        assert not is_read_only("formatted_address", EntityType.ORGANIZATIONS)

    def test_denormalized_name_needs_id_sibling(self):
        assert is_read_only("owner_name", DEALS, frozenset({"owner_id", "owner_name"}))
        assert not is_read_only("owner_name", DEALS, frozenset({"owner_name"}))

    def test_cross_entity_depends_on_current_entity(self):
        assert is_read_only("person_id.name", DEALS)
        assert not is_read_only("person_id.name", PERSONS)
        assert is_read_only("org.address", PERSONS)
        assert not is_read_only("org.address", EntityType.ORGANIZATIONS)

    def test_user_paths_are_always_read_only(self):
        assert is_read_only("owner_id.email", DEALS)
        assert is_read_only("creator_user_id.name", PERSONS)

    def test_top_level_reference_ids_are_editable(self):
        assert not is_read_only("owner_id", DEALS)
        assert not is_read_only("org_id", DEALS)

    def test_entity_specific_lists(self):
        assert is_read_only("acv", DEALS)
        assert not is_read_only("acv", PERSONS)
        assert is_read_only("pic_hash", PERSONS)
        assert is_read_only("was_seen", EntityType.LEADS)

    def test_custom_field_components(self):
        assert is_read_only("custom_fields.abc.postal_code", DEALS)
        assert not is_read_only("custom_fields.abc", DEALS)
