"""Tests for the column picker service and its grouping."""

from __future__ import annotations

from src.sheetsync.columns.picker import MAIN_FIELDS_GROUP, ColumnPickerService, group_columns
from src.sheetsync.columns.schemas import Column, EntityType, OwnerScope, SelectedColumn

ALICE = "alice@example.com"
SHEET = "Pipeline"


def _col(key: str, name: str, parent: str | None = None) -> Column:
    return Column(key=key, display_name=name, is_nested=parent is not None, parent_key=parent)


class TestGroupColumns:
    def test_main_fields_and_parent_groups(self):
        groups = group_columns([
            _col("id", "ID"),
            _col("org_id", "Organization"),
            _col("org_id.name", "Organization Name", "org_id"),
            _col("custom_fields.region", "Region", "custom_fields"),
            _col("org_id.value", "Organization Value", "org_id"),
        ])

        assert [(g.name, [c.key for c in g.columns]) for g in groups] == [
            (MAIN_FIELDS_GROUP, ["id", "org_id"]),
            ("Organization", ["org_id.name", "org_id.value"]),
            ("Custom Fields", ["custom_fields.region"]),
        ]
        assert groups[1].parent_key == "org_id"

    def test_no_main_group_when_all_nested(self):
        groups = group_columns([_col("a.b", "A B", "a")])
        assert [g.name for g in groups] == ["A"]


class TestColumnPickerService:
    async def test_defaults_when_nothing_saved(self, store, deal_sample):
        state = await ColumnPickerService(store).load(EntityType.DEALS, SHEET, ALICE, deal_sample)

        assert state.is_default is True
        assert state.scope is None
        assert [s.key for s in state.selected] == ["id", "title", "status", "value", "currency", "owner_id"]
        assert state.groups[0].name == MAIN_FIELDS_GROUP
        assert [c.key for c in state.available][0] == "id"

    async def test_saved_selection(self, store, deal_sample):
        picker = ColumnPickerService(store)
        await picker.save(
            EntityType.DEALS,
            SHEET,
            ALICE,
            [SelectedColumn(key="title", name="Title", custom_name="Deal")],
        )

        state = await picker.load(EntityType.DEALS, SHEET, ALICE, deal_sample)

        assert state.is_default is False
        assert state.scope is OwnerScope.PERSONAL
        assert [(s.key, s.header) for s in state.selected] == [("title", "Deal")]

    async def test_bad_sample_still_loads(self, store):
        state = await ColumnPickerService(store).load(EntityType.PERSONS, SHEET, ALICE, "garbage")

        assert [c.key for c in state.available] == ["id", "name", "email", "phone"]
        assert [s.key for s in state.selected] == ["id", "name", "email", "phone"]
