"""REST API endpoints for column discovery and column preferences.

Called by the picker dialog: discover columns from a sample record, load
the picker state for a sheet, and read/replace the saved selection. The
caller is identified by the X-User-Email header.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.sheetsync.api.deps import get_picker_service, get_preference_store, get_user_email
from src.sheetsync.columns.extraction import extract_columns
from src.sheetsync.columns.naming import build_field_map
from src.sheetsync.columns.picker import ColumnPickerService, PickerState
from src.sheetsync.columns.schemas import Column, EntityType, OwnerScope, SelectedColumn
from src.sheetsync.config import get_settings
from src.sheetsync.preferences.store import PreferenceStore

router = APIRouter(prefix="/columns", tags=["columns"])


# ── Request/Response Schemas ─────────────────────────────────────────────────


class DiscoverRequest(BaseModel):
    """One sample record plus the CRM's field names.

    Either ``field_map`` ({key: name}) or ``field_definitions``
    ([{key, name, ...}]) may be given; the map wins on conflicts.
    """

    sample: Any = None
    field_map: dict[str, str] = Field(default_factory=dict)
    field_definitions: list[dict[str, Any]] = Field(default_factory=list)

    def resolved_field_map(self) -> dict[str, str]:
        return {**build_field_map(self.field_definitions), **self.field_map}


class PreferencesResponse(BaseModel):
    entity_type: EntityType
    sheet_name: str
    scope: OwnerScope | None = None
    columns: list[SelectedColumn] = Field(default_factory=list)


class SavePreferencesRequest(BaseModel):
    columns: list[SelectedColumn]


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/{entity_type}/discover", response_model=list[Column])
async def discover_columns(entity_type: EntityType, body: DiscoverRequest) -> list[Column]:
    """Discover every column in a sample record. Never fails on a bad sample."""
    settings = get_settings()
    return extract_columns(
        body.sample,
        body.resolved_field_map(),
        entity_type,
        hash_min_length=settings.CUSTOM_FIELD_HASH_MIN_LENGTH,
    )


@router.post("/{entity_type}/{sheet_name}/picker", response_model=PickerState)
async def load_picker(
    entity_type: EntityType,
    sheet_name: str,
    body: DiscoverRequest,
    user_email: str = Depends(get_user_email),
    picker: ColumnPickerService = Depends(get_picker_service),
) -> PickerState:
    """Available columns, their groups and the current selection for a sheet."""
    return await picker.load(
        entity_type,
        sheet_name,
        user_email,
        body.sample,
        body.resolved_field_map(),
    )


@router.get("/{entity_type}/{sheet_name}/preferences", response_model=PreferencesResponse)
async def get_preferences(
    entity_type: EntityType,
    sheet_name: str,
    user_email: str = Depends(get_user_email),
    store: PreferenceStore = Depends(get_preference_store),
) -> PreferencesResponse:
    """The caller's saved selection; empty with no scope when nothing is saved."""
    record = await store.get(entity_type, sheet_name, user_email)
    if record is None:
        return PreferencesResponse(entity_type=entity_type, sheet_name=sheet_name)
    return PreferencesResponse(
        entity_type=entity_type,
        sheet_name=sheet_name,
        scope=record.owner_scope,
        columns=record.columns,
    )


@router.put("/{entity_type}/{sheet_name}/preferences", response_model=PreferencesResponse)
async def save_preferences(
    entity_type: EntityType,
    sheet_name: str,
    body: SavePreferencesRequest,
    user_email: str = Depends(get_user_email),
    store: PreferenceStore = Depends(get_preference_store),
) -> PreferencesResponse:
    """Replace the caller's authoritative selection."""
    record = await store.save(entity_type, sheet_name, user_email, body.columns)
    return PreferencesResponse(
        entity_type=entity_type,
        sheet_name=sheet_name,
        scope=record.owner_scope,
        columns=record.columns,
    )


@router.get("/{entity_type}/{sheet_name}/header-map", response_model=dict[str, str])
async def get_header_map(
    entity_type: EntityType,
    sheet_name: str,
    store: PreferenceStore = Depends(get_preference_store),
) -> dict[str, str]:
    """Sheet header -> column key map written by the last save."""
    return await store.get_header_map(entity_type, sheet_name)
