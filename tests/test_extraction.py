"""Tests for the full extraction pipeline and its fallback behaviour."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from src.sheetsync.columns.extraction import extract_columns, fallback_columns
from src.sheetsync.columns.schemas import EntityType

CURRENCY_FIELD = "abcdef0123456789abcdef01"


def _keys(columns) -> list[str]:
    return [c.key for c in columns]


# ── Pipeline ───────────────────────────────────────────────────────────────


class TestExtractColumns:
    def test_deal_sample_full_order(self, deal_sample):
        columns = extract_columns(deal_sample, {}, EntityType.DEALS)

        assert _keys(columns) == [
            "id",
            "owner_id",
            "title",
            "status",
            "value",
            "currency",
            "org_id",
            "person_id",
            "add_time",
            "products_count",
            "person_id.email.work",
            "person_id.email.0.value",
            f"custom_fields.{CURRENCY_FIELD}",
            "org_id.address",
            "org_id.name",
            "org_id.value",
            "owner_id.email",
            "owner_id.id",
            "owner_id.name",
            "owner_id.value",
            "person_id.name",
            "person_id.value",
        ]

    def test_keys_are_unique(self, deal_sample):
        keys = _keys(extract_columns(deal_sample, {}, EntityType.DEALS))
        assert len(keys) == len(set(keys))

    def test_deterministic(self, deal_sample):
        first = extract_columns(deal_sample, {"title": "Deal"}, EntityType.DEALS)
        second = extract_columns(deal_sample, {"title": "Deal"}, EntityType.DEALS)

        assert [c.model_dump_json() for c in first] == [c.model_dump_json() for c in second]

    def test_display_names_and_flags(self, deal_sample):
        columns = {c.key: c for c in extract_columns(deal_sample, {"title": "Deal Name"}, EntityType.DEALS)}

        assert columns["title"].display_name == "Deal Name"
        assert columns["add_time"].display_name == "Created Date"
        assert columns[f"custom_fields.{CURRENCY_FIELD}"].display_name == "Currency Field (Currency)"
        assert columns["id"].read_only is True
        assert columns["org_id.name"].read_only is True
        assert columns["title"].read_only is False

    def test_denormalized_and_metadata_keys_are_absent(self, deal_sample):
        keys = set(_keys(extract_columns(deal_sample, {}, EntityType.DEALS)))

        assert "org_name" not in keys
        assert "person_name" not in keys
        assert "label" not in keys
        assert "formatted_value" not in keys
        assert not any(k.startswith("_meta") for k in keys)

    def test_org_and_org_id_keep_only_org_id(self):
        sample = {"id": 1, "org_id": {"name": "Acme", "value": 7}, "org": {"name": "Acme"}}
        keys = _keys(extract_columns(sample, {}, EntityType.DEALS))

        assert keys == ["id", "org_id", "org_id.name", "org_id.value"]

    def test_person_contact_columns(self, person_sample):
        columns = extract_columns(person_sample, {}, EntityType.PERSONS)
        keys = _keys(columns)

        assert keys[:2] == ["id", "name"]
        email_keys = [k for k in keys if k.startswith("email.")]
        assert sorted(email_keys) == ["email.0.value", "email.home", "email.work"]

    def test_sample_is_not_mutated(self, deal_sample):
        before = repr(deal_sample)
        extract_columns(deal_sample, {}, EntityType.DEALS)
        assert repr(deal_sample) == before


# ── Fallback ───────────────────────────────────────────────────────────────


class TestFallback:
    @pytest.mark.parametrize("sample", [None, "not a record", 42, [], {}])
    def test_unusable_sample_falls_back(self, sample):
        assert _keys(extract_columns(sample, {}, EntityType.DEALS)) == ["id", "name"]

    def test_person_fallback_adds_email_and_phone(self):
        columns = extract_columns(None, {}, EntityType.PERSONS)
        assert _keys(columns) == ["id", "name", "email", "phone"]

    def test_unexpected_error_falls_back(self, deal_sample):
        with patch(
            "src.sheetsync.columns.extraction.walk",
            side_effect=RuntimeError("boom"),
        ):
            columns = extract_columns(deal_sample, {}, EntityType.DEALS)

        assert _keys(columns) == ["id", "name"]

    def test_fallback_columns_are_classified(self):
        columns = {c.key: c for c in fallback_columns(EntityType.PERSONS)}

        assert columns["id"].display_name == "ID"
        assert columns["id"].read_only is True
        assert columns["name"].read_only is False
        assert columns["email"].display_name == "Email"
