"""Column picker service -- joins discovery output with saved preferences.

Builds what the picker dialog renders: every available column (grouped as
"Main Fields" plus one group per nested parent), the current selection
(saved or defaulted) and the scope it was resolved from.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.sheetsync.columns.extraction import extract_columns
from src.sheetsync.columns.naming import format_column_name
from src.sheetsync.columns.schemas import Column, EntityType, OwnerScope, SelectedColumn
from src.sheetsync.columns.selection import default_selection

if TYPE_CHECKING:
    from src.sheetsync.preferences.store import PreferenceStore

logger = structlog.get_logger(__name__)

MAIN_FIELDS_GROUP = "Main Fields"


class ColumnGroup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    parent_key: str | None = Field(default=None, alias="parentKey")
    columns: list[Column] = Field(default_factory=list)


class PickerState(BaseModel):
    """Everything the picker needs for one (entity, sheet, user)."""

    entity_type: EntityType
    sheet_name: str
    available: list[Column] = Field(default_factory=list)
    groups: list[ColumnGroup] = Field(default_factory=list)
    selected: list[SelectedColumn] = Field(default_factory=list)
    scope: OwnerScope | None = None
    is_default: bool = False


def group_columns(columns: Sequence[Column]) -> list[ColumnGroup]:
    """Group columns for display, preserving registry order within each group.

    Non-nested columns form "Main Fields"; nested columns are grouped by
    parent key and labelled with the parent column's display name (or the
    formatted parent key when the parent is not itself a column).
    """
    names = {c.key: c.display_name for c in columns}
    main = ColumnGroup(name=MAIN_FIELDS_GROUP)
    nested: dict[str, ColumnGroup] = {}

    for column in columns:
        if not column.is_nested or not column.parent_key:
            main.columns.append(column)
            continue
        group = nested.get(column.parent_key)
        if group is None:
            group = ColumnGroup(
                name=names.get(column.parent_key) or format_column_name(column.parent_key),
                parent_key=column.parent_key,
            )
            nested[column.parent_key] = group
        group.columns.append(column)

    groups = [main] if main.columns else []
    return groups + list(nested.values())


class ColumnPickerService:
    """Loads and saves picker state.

    Args:
        store: Preference store used for the saved selection.
        hash_min_length: Minimum length of a hex custom field key.
    """

    def __init__(self, store: PreferenceStore, hash_min_length: int = 20) -> None:
        self._store = store
        self._hash_min_length = hash_min_length

    async def load(
        self,
        entity_type: EntityType,
        sheet_name: str,
        user_email: str,
        sample: Any,
        field_map: Mapping[str, str] | None = None,
    ) -> PickerState:
        available = extract_columns(
            sample,
            field_map,
            entity_type,
            hash_min_length=self._hash_min_length,
        )
        record = await self._store.get(entity_type, sheet_name, user_email)

        if record is not None and record.columns:
            selected = record.columns
            scope = record.owner_scope
            is_default = False
        else:
            selected = default_selection(entity_type, available)
            scope = None
            is_default = True

        logger.debug(
            "picker.loaded",
            entity_type=entity_type.value,
            sheet_name=sheet_name,
            available=len(available),
            selected=len(selected),
            is_default=is_default,
        )
        return PickerState(
            entity_type=entity_type,
            sheet_name=sheet_name,
            available=available,
            groups=group_columns(available),
            selected=selected,
            scope=scope,
            is_default=is_default,
        )

    async def save(
        self,
        entity_type: EntityType,
        sheet_name: str,
        user_email: str,
        selected: Sequence[SelectedColumn],
    ) -> list[SelectedColumn]:
        record = await self._store.save(entity_type, sheet_name, user_email, selected)
        return record.columns
