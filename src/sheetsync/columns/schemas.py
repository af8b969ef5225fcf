"""Pydantic schemas for column discovery and column preferences.

Defines all structured types shared by the discovery engine and the
preference store:
- Enums: EntityType, NodeKind, ColumnKind, OwnerScope, TeamRole
- Discovery: RawColumn (walker output), Column (final, classified)
- Selection: SelectedColumn (a chosen Column plus optional custom header)
- Persistence: PreferenceKey, PreferenceRecord
- Teams: TeamSettings, TeamRecord, TeamMembership
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

# A sample record as returned by the CRM: an untyped JSON tree.
JSONValue = Union[None, bool, int, float, str, list[Any], dict[str, Any]]


# ── Enums ───────────────────────────────────────────────────────────────────


class EntityType(str, Enum):
    """CRM entity types a sheet can be bound to."""

    DEALS = "deals"
    PERSONS = "persons"
    ORGANIZATIONS = "organizations"
    ACTIVITIES = "activities"
    LEADS = "leads"
    PRODUCTS = "products"


class NodeKind(str, Enum):
    """Tag of a JSON node, used by the walker to dispatch on shape."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"
    OPAQUE = "opaque"  # functions or other non-JSON artifacts


class ColumnKind(str, Enum):
    """How a raw column was discovered."""

    SCALAR = "scalar"
    OBJECT = "object"
    ARRAY = "array"
    CONTACT_PRIMARY = "contact_primary"
    CONTACT_LABEL = "contact_label"
    CUSTOM_FIELD = "custom_field"
    CUSTOM_COMPONENT = "custom_component"


class OwnerScope(str, Enum):
    """Which tier a preference record lives in."""

    PERSONAL = "personal"
    TEAM = "team"


class TeamRole(str, Enum):
    ADMIN = "Admin"
    MEMBER = "Member"


# ── Discovery ───────────────────────────────────────────────────────────────


class RawColumn(BaseModel):
    """A column as emitted by the walker, before dedup and classification."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    kind: ColumnKind = ColumnKind.SCALAR
    is_nested: bool = False
    parent_key: str | None = None


class Column(BaseModel):
    """An addressable, displayable field derived from a sample record.

    ``key`` is the dot-path used for persistence and is unique within any
    result set returned by the registry.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    display_name: str = Field(alias="displayName")
    is_nested: bool = Field(default=False, alias="isNested")
    parent_key: str | None = Field(default=None, alias="parentKey")
    read_only: bool = Field(default=False, alias="readOnly")


# ── Selection ───────────────────────────────────────────────────────────────


class SelectedColumn(BaseModel):
    """A column chosen by the user, in display order.

    Serialized with camelCase aliases so stored values keep the shape
    ``{key, name, customName, isNested, parentKey}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    key: str
    name: str = ""
    custom_name: str = Field(default="", alias="customName")
    is_nested: bool = Field(default=False, alias="isNested")
    parent_key: str | None = Field(default=None, alias="parentKey")

    @property
    def header(self) -> str:
        """Header text written to the sheet: the custom name when set."""
        return self.custom_name or self.name

    @classmethod
    def from_column(cls, column: Column, custom_name: str = "") -> SelectedColumn:
        return cls(
            key=column.key,
            name=column.display_name,
            custom_name=custom_name,
            is_nested=column.is_nested,
            parent_key=column.parent_key,
        )


# ── Persistence ─────────────────────────────────────────────────────────────


class PreferenceKey(BaseModel):
    """Logical identity of a preference record: (entity, sheet, scope)."""

    model_config = ConfigDict(frozen=True)

    entity_type: EntityType
    sheet_name: str
    scope: OwnerScope
    scope_id: str  # user email for personal scope, team id for team scope


class PreferenceRecord(BaseModel):
    """The saved, ordered column selection for one (entity, sheet, scope)."""

    entity_type: EntityType
    sheet_name: str
    owner_scope: OwnerScope
    scope_id: str
    columns: list[SelectedColumn] = Field(default_factory=list)
    migrated: bool = False


# ── Teams ───────────────────────────────────────────────────────────────────


class TeamSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    share_filters: bool = Field(default=True, alias="shareFilters")
    share_columns: bool = Field(default=True, alias="shareColumns")


class TeamRecord(BaseModel):
    """A team as persisted in TEAMS_DATA (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = "Unnamed Team"
    created_by: str | None = Field(default=None, alias="createdBy")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    admin_emails: list[str] = Field(default_factory=list, alias="adminEmails")
    member_emails: list[str] = Field(default_factory=list, alias="memberEmails")
    # Newer format: {email: role}, alongside or instead of the email lists
    members: dict[str, TeamRole] = Field(default_factory=dict)
    settings: TeamSettings = Field(default_factory=TeamSettings)


class TeamMembership(BaseModel):
    """A user's association with a team, resolved from the team directory."""

    user_email: str
    team_id: str
    team_name: str
    role: TeamRole = TeamRole.MEMBER
    share_columns: bool = True
