"""PreferenceStore -- two-tier (personal / team-shared) column preferences.

Scope resolution per user:
- Member of a team with shareColumns enabled: the team record is
  authoritative. If it does not exist yet but the user has a personal
  record, the personal record is copied into the team key (one-time
  migration) and the team value is returned from then on.
- Otherwise (no team, sharing disabled, or team lookup failed): the
  personal record.

Writes are full replaces of a single record and are last-writer-wins.
Migration uses set_if_absent, so a team record that already exists is
never overwritten by a concurrent migration.

Recoverable failures (team lookup errors, corrupt stored JSON) are logged
and degrade to personal scope / "no preferences"; they never raise.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

import structlog
from pydantic import TypeAdapter, ValidationError

from src.sheetsync.columns.naming import format_column_name
from src.sheetsync.columns.schemas import (
    EntityType,
    OwnerScope,
    PreferenceKey,
    PreferenceRecord,
    SelectedColumn,
    TeamMembership,
)
from src.sheetsync.columns.selection import dedupe_selection
from src.sheetsync.preferences.keys import header_map_key, storage_key
from src.sheetsync.preferences.kv import KeyValueStore
from src.sheetsync.preferences.teams import TeamDirectory

logger = structlog.get_logger(__name__)

_COLUMNS_ADAPTER = TypeAdapter(list[SelectedColumn])


def encode_columns(columns: Sequence[SelectedColumn]) -> str:
    """Serialize to the stored shape ``[{key, name, customName, isNested, parentKey}]``."""
    return _COLUMNS_ADAPTER.dump_json(list(columns), by_alias=True).decode()


def decode_columns(raw: str) -> list[SelectedColumn]:
    """Parse a stored column list.

    Raises:
        ValidationError: If ``raw`` is not valid JSON of the stored shape.
    """
    return _COLUMNS_ADAPTER.validate_json(raw)


class PreferenceStore:
    """Reads and writes column selections with team/personal resolution.

    Args:
        kv: Backing key/value store.
        teams: Team directory used to resolve the authoritative scope.
    """

    def __init__(self, kv: KeyValueStore, teams: TeamDirectory) -> None:
        self._kv = kv
        self._teams = teams

    async def _sharing_team(self, user_email: str) -> TeamMembership | None:
        """The user's team if it shares columns; None on any lookup failure."""
        try:
            membership = await self._teams.get_user_team(user_email)
        except Exception as exc:
            logger.warning(
                "preferences.team_lookup_failed",
                user_email=user_email,
                error=str(exc),
            )
            return None
        if membership is None or not membership.share_columns:
            return None
        return membership

    async def _read(self, pref_key: PreferenceKey) -> tuple[str | None, list[SelectedColumn] | None]:
        """Return (raw, columns); columns is None when raw is corrupt."""
        key = storage_key(pref_key)
        raw = await self._kv.get(key)
        if not raw:
            return None, None
        try:
            return raw, decode_columns(raw)
        except ValidationError as exc:
            logger.warning(
                "preferences.corrupt_record",
                key=key,
                error_count=exc.error_count(),
            )
            return raw, None

    def _record(
        self,
        pref_key: PreferenceKey,
        columns: list[SelectedColumn],
        migrated: bool = False,
    ) -> PreferenceRecord:
        return PreferenceRecord(
            entity_type=pref_key.entity_type,
            sheet_name=pref_key.sheet_name,
            owner_scope=pref_key.scope,
            scope_id=pref_key.scope_id,
            columns=columns,
            migrated=migrated,
        )

    async def get(
        self,
        entity_type: EntityType,
        sheet_name: str,
        user_email: str,
    ) -> PreferenceRecord | None:
        """Resolve the user's saved selection.

        Returns:
            The authoritative PreferenceRecord, or None when nothing is saved
            (or the saved record is corrupt) and the caller should apply
            defaults.
        """
        personal = PreferenceKey(
            entity_type=entity_type,
            sheet_name=sheet_name,
            scope=OwnerScope.PERSONAL,
            scope_id=user_email,
        )

        team = await self._sharing_team(user_email)
        if team is not None:
            team_key = PreferenceKey(
                entity_type=entity_type,
                sheet_name=sheet_name,
                scope=OwnerScope.TEAM,
                scope_id=team.team_id,
            )
            raw, columns = await self._read(team_key)
            if raw is not None:
                return self._record(team_key, columns) if columns is not None else None

            # Corrupt personal records are never copied into team scope
            personal_raw, personal_columns = await self._read(personal)
            if personal_raw is None or personal_columns is None:
                return None
            return await self._migrate(team_key, personal_raw, user_email)

        _, columns = await self._read(personal)
        if columns is None:
            return None
        return self._record(personal, columns)

    async def _migrate(
        self,
        team_key: PreferenceKey,
        personal_raw: str,
        user_email: str,
    ) -> PreferenceRecord | None:
        written = await self._kv.set_if_absent(storage_key(team_key), personal_raw)
        if written:
            logger.info(
                "preferences.migrated_to_team",
                team_id=team_key.scope_id,
                sheet_name=team_key.sheet_name,
                entity_type=team_key.entity_type.value,
                user_email=user_email,
            )

        # Whatever is in the team key now is authoritative
        _, columns = await self._read(team_key)
        if columns is None:
            return None
        return self._record(team_key, columns, migrated=True)

    async def get_columns(
        self,
        entity_type: EntityType,
        sheet_name: str,
        user_email: str,
    ) -> list[SelectedColumn]:
        """Saved selection as a list; empty when nothing usable is saved."""
        record = await self.get(entity_type, sheet_name, user_email)
        return record.columns if record is not None else []

    async def save(
        self,
        entity_type: EntityType,
        sheet_name: str,
        user_email: str,
        columns: Sequence[SelectedColumn],
    ) -> PreferenceRecord:
        """Replace the user's authoritative record with ``columns``.

        Writes to the team record when the user's team shares columns,
        otherwise to the personal record. Also refreshes the sheet's
        header-to-field map.
        """
        selection = [
            c if c.name else c.model_copy(update={"name": format_column_name(c.key)})
            for c in dedupe_selection(columns)
        ]

        team = await self._sharing_team(user_email)
        if team is not None:
            pref_key = PreferenceKey(
                entity_type=entity_type,
                sheet_name=sheet_name,
                scope=OwnerScope.TEAM,
                scope_id=team.team_id,
            )
        else:
            pref_key = PreferenceKey(
                entity_type=entity_type,
                sheet_name=sheet_name,
                scope=OwnerScope.PERSONAL,
                scope_id=user_email,
            )

        await self._kv.set(storage_key(pref_key), encode_columns(selection))

        header_map = {c.header: c.key for c in selection}
        await self._kv.set(
            header_map_key(sheet_name, entity_type),
            json.dumps(header_map, separators=(",", ":")),
        )

        logger.info(
            "preferences.saved",
            scope=pref_key.scope.value,
            sheet_name=sheet_name,
            entity_type=entity_type.value,
            columns=len(selection),
        )
        return self._record(pref_key, selection)

    async def get_header_map(self, entity_type: EntityType, sheet_name: str) -> dict[str, str]:
        """Header text -> column key for a sheet; empty when missing or corrupt."""
        key = header_map_key(sheet_name, entity_type)
        raw = await self._kv.get(key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("preferences.corrupt_header_map", key=key, error=str(exc))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(header): str(field_key) for header, field_key in data.items()}
