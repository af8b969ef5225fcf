"""SelectedColumn lifecycle operations.

A selection is an ordered list of SelectedColumn (list order = sheet column
order). Every operation returns a new list and leaves its input untouched;
keys stay unique within a selection.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from src.sheetsync.columns.schemas import Column, EntityType, SelectedColumn

# Columns pre-selected for a sheet with no saved preferences.
DEFAULT_COLUMNS: dict[EntityType, tuple[str, ...]] = {
    EntityType.DEALS: (
        "id", "title", "status", "value", "currency", "owner_id", "created_at", "updated_at",
    ),
    EntityType.PERSONS: ("id", "name", "email", "phone", "owner_id", "created_at", "updated_at"),
    EntityType.ORGANIZATIONS: ("id", "name", "address", "owner_id", "created_at", "updated_at"),
    EntityType.ACTIVITIES: (
        "id",
        "type",
        "due_date",
        "duration",
        "deal_id",
        "person_id",
        "org_id",
        "note",
        "created_at",
        "updated_at",
    ),
    EntityType.LEADS: (
        "id", "title", "owner_id", "person_id", "organization_id", "created_at", "updated_at",
    ),
    EntityType.PRODUCTS: (
        "id",
        "name",
        "code",
        "description",
        "unit",
        "tax",
        "active_flag",
        "created_at",
        "updated_at",
    ),
}

# Used when none of the entity's defaults are available in the sample.
DEFAULT_FALLBACK_COUNT = 5


def dedupe_selection(selection: Iterable[SelectedColumn]) -> list[SelectedColumn]:
    """Drop repeated keys, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[SelectedColumn] = []
    for selected in selection:
        if selected.key in seen:
            continue
        seen.add(selected.key)
        unique.append(selected)
    return unique


def add_column(
    selection: Sequence[SelectedColumn],
    column: Column,
    custom_name: str = "",
) -> list[SelectedColumn]:
    """Append ``column`` to the end of the selection (no-op if already selected)."""
    if any(s.key == column.key for s in selection):
        return list(selection)
    return [*selection, SelectedColumn.from_column(column, custom_name)]


def remove_column(selection: Sequence[SelectedColumn], key: str) -> list[SelectedColumn]:
    return [s for s in selection if s.key != key]


def move_column(
    selection: Sequence[SelectedColumn],
    key: str,
    to_index: int,
) -> list[SelectedColumn]:
    """Move the column ``key`` to position ``to_index`` (clamped to the list bounds).

    Raises:
        KeyError: If ``key`` is not in the selection.
    """
    items = list(selection)
    for index, selected in enumerate(items):
        if selected.key == key:
            break
    else:
        raise KeyError(key)

    moved = items.pop(index)
    to_index = max(0, min(to_index, len(items)))
    items.insert(to_index, moved)
    return items


def rename_column(
    selection: Sequence[SelectedColumn],
    key: str,
    custom_name: str,
) -> list[SelectedColumn]:
    """Set (or clear, with an empty string) the custom header of ``key``.

    Raises:
        KeyError: If ``key`` is not in the selection.
    """
    if not any(s.key == key for s in selection):
        raise KeyError(key)
    return [
        s.model_copy(update={"custom_name": custom_name.strip()}) if s.key == key else s
        for s in selection
    ]


def _default_key(key: str, by_key: Mapping[str, Column]) -> str | None:
    """The available key standing in for default ``key``.

    Contact arrays never produce a bare ``email``/``phone`` column, so a
    default naming one resolves to its primary value column.
    """
    if key in by_key:
        return key
    primary = f"{key}.0.value"
    return primary if primary in by_key else None


def default_selection(
    entity_type: EntityType,
    available: Sequence[Column],
) -> list[SelectedColumn]:
    """Default columns for ``entity_type`` that exist in ``available``.

    Keeps the default list's order. When none of them are available the
    first few available columns are used instead.
    """
    by_key = {column.key: column for column in available}
    resolved = (_default_key(key, by_key) for key in DEFAULT_COLUMNS.get(entity_type, ()))
    chosen = [SelectedColumn.from_column(by_key[key]) for key in resolved if key is not None]
    if not chosen:
        chosen = [SelectedColumn.from_column(c) for c in available[:DEFAULT_FALLBACK_COUNT]]
    return chosen
