"""Storage key derivation.

These key formats are persisted and must stay stable across versions so
previously saved preferences keep resolving.
"""

from __future__ import annotations

from src.sheetsync.columns.schemas import EntityType, OwnerScope, PreferenceKey

TEAMS_DATA_KEY = "TEAMS_DATA"
EMAIL_TO_TEAM_MAP_KEY = "EMAIL_TO_TEAM_MAP"


def _entity(entity_type: EntityType | str) -> str:
    return entity_type.value if isinstance(entity_type, EntityType) else str(entity_type)


def personal_columns_key(sheet_name: str, entity_type: EntityType | str, user_email: str) -> str:
    return f"COLUMNS_{sheet_name}_{_entity(entity_type)}_{user_email}"


def team_columns_key(sheet_name: str, entity_type: EntityType | str, team_id: str) -> str:
    return f"COLUMNS_{sheet_name}_{_entity(entity_type)}_TEAM_{team_id}"


def header_map_key(sheet_name: str, entity_type: EntityType | str) -> str:
    return f"HEADER_TO_FIELD_MAP_{sheet_name}_{_entity(entity_type)}"


def storage_key(pref_key: PreferenceKey) -> str:
    """Concrete storage key for a logical (entity, sheet, scope) identity."""
    if pref_key.scope is OwnerScope.TEAM:
        return team_columns_key(pref_key.sheet_name, pref_key.entity_type, pref_key.scope_id)
    return personal_columns_key(pref_key.sheet_name, pref_key.entity_type, pref_key.scope_id)
