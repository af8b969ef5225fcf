"""Team directory -- team membership lookup and management.

Teams live in a single ``TEAMS_DATA`` JSON document keyed by team id, with a
derived ``EMAIL_TO_TEAM_MAP`` ({lower-cased email: team id}) kept alongside
as a fast path for membership lookups. A team lists its members either in
``memberEmails``/``adminEmails`` or in a ``members`` map of email to role;
both are honored. Emails are compared case-insensitively everywhere.

Read failures raise TeamLookupError so callers can decide how to degrade;
invalid management requests raise TeamError.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

import structlog
from pydantic import ValidationError

from src.sheetsync.columns.schemas import TeamMembership, TeamRecord, TeamRole
from src.sheetsync.preferences.keys import EMAIL_TO_TEAM_MAP_KEY, TEAMS_DATA_KEY
from src.sheetsync.preferences.kv import KeyValueStore

logger = structlog.get_logger(__name__)

# Team plan allows up to 5 users total (admin included).
MAX_TEAM_MEMBERS = 5


class TeamError(ValueError):
    """Invalid team management request."""


class TeamNotFoundError(TeamError):
    """The referenced team does not exist."""


class TeamLookupError(Exception):
    """Team data could not be read or parsed."""


def _normalize(email: str) -> str:
    return email.strip().lower()


def _contains(emails: Iterable[str], email: str) -> bool:
    normalized = _normalize(email)
    return any(_normalize(e) == normalized for e in emails)


def _member_emails(team: TeamRecord) -> list[str]:
    """Members from both the email list and the ``members`` role map."""
    emails = list(team.member_emails)
    for email in team.members:
        if not _contains(emails, email):
            emails.append(email)
    return emails


def _admin_emails(team: TeamRecord) -> list[str]:
    emails = list(team.admin_emails)
    for email, role in team.members.items():
        if role is TeamRole.ADMIN and not _contains(emails, email):
            emails.append(email)
    return emails


def _without(emails: Iterable[str], email: str) -> list[str]:
    normalized = _normalize(email)
    return [e for e in emails if _normalize(e) != normalized]


class TeamDirectory:
    """Reads and updates team data in a KeyValueStore.

    Args:
        kv: Backing key/value store (shared with the preference store).
        max_members: Maximum members per team.
    """

    def __init__(self, kv: KeyValueStore, max_members: int = MAX_TEAM_MEMBERS) -> None:
        self._kv = kv
        self._max_members = max_members

    # ── Reads ───────────────────────────────────────────────────────────────

    async def get_teams(self) -> dict[str, TeamRecord]:
        """Load all teams.

        Raises:
            TeamLookupError: If the stored team data is not valid JSON or
                does not have the expected shape.
        """
        raw = await self._kv.get(TEAMS_DATA_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise TeamLookupError("Team data is not an object")
            return {
                str(team_id): TeamRecord.model_validate(team)
                for team_id, team in data.items()
            }
        except (json.JSONDecodeError, ValidationError) as exc:
            raise TeamLookupError(f"Team data is corrupt: {exc}") from exc

    async def _email_map(self) -> dict[str, str]:
        raw = await self._kv.get(EMAIL_TO_TEAM_MAP_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            # The map is derived data; the full scan still works without it
            logger.warning("teams.email_map_corrupt", error=str(exc))
            return {}
        return data if isinstance(data, dict) else {}

    async def get_user_team(self, user_email: str) -> TeamMembership | None:
        """Resolve the team ``user_email`` belongs to, or None.

        Raises:
            TeamLookupError: If team data cannot be read.
        """
        if not user_email:
            return None
        email = _normalize(user_email)
        teams = await self.get_teams()
        if not teams:
            return None

        mapped_id = (await self._email_map()).get(email)
        if mapped_id and mapped_id in teams:
            return self._membership(email, mapped_id, teams[mapped_id])

        for team_id, team in teams.items():
            if _contains(_member_emails(team), email):
                return self._membership(email, team_id, team)

        return None

    @staticmethod
    def _membership(email: str, team_id: str, team: TeamRecord) -> TeamMembership:
        role = TeamRole.ADMIN if _contains(_admin_emails(team), email) else TeamRole.MEMBER
        return TeamMembership(
            user_email=email,
            team_id=team_id,
            team_name=team.name,
            role=role,
            share_columns=team.settings.share_columns,
        )

    # ── Writes ──────────────────────────────────────────────────────────────

    async def _save(self, teams: dict[str, TeamRecord]) -> None:
        payload = {
            team_id: team.model_dump(mode="json", by_alias=True)
            for team_id, team in teams.items()
        }
        await self._kv.set(TEAMS_DATA_KEY, json.dumps(payload, separators=(",", ":")))

        email_map: dict[str, str] = {}
        for team_id, team in teams.items():
            for member in _member_emails(team):
                email_map[_normalize(member)] = team_id
        await self._kv.set(EMAIL_TO_TEAM_MAP_KEY, json.dumps(email_map, separators=(",", ":")))

    async def create_team(self, team_name: str, user_email: str) -> tuple[str, TeamRecord]:
        """Create a team with ``user_email`` as its first admin and member.

        Returns:
            Tuple of (team_id, TeamRecord).

        Raises:
            TeamError: If the name is empty or the user is already in a team.
        """
        name = (team_name or "").strip()
        if not name:
            raise TeamError("Team name is required")
        if await self.get_user_team(user_email) is not None:
            raise TeamError("User is already a member of a team")

        teams = await self.get_teams()
        team_id = str(uuid.uuid4())
        team = TeamRecord(
            name=name,
            created_by=user_email,
            created_at=datetime.now(timezone.utc),
            admin_emails=[user_email],
            member_emails=[user_email],
        )
        teams[team_id] = team
        await self._save(teams)

        logger.info("teams.created", team_id=team_id, created_by=user_email)
        return team_id, team

    async def join_team(self, team_id: str, user_email: str) -> TeamMembership:
        """Add ``user_email`` to an existing team.

        Raises:
            TeamNotFoundError: If the team does not exist.
            TeamError: If the user is already in a team or the team is full.
        """
        if await self.get_user_team(user_email) is not None:
            raise TeamError("User is already a member of a team")

        teams = await self.get_teams()
        team = teams.get(team_id)
        if team is None:
            raise TeamNotFoundError(f"Team {team_id} not found")
        if len(_member_emails(team)) >= self._max_members:
            raise TeamError(f"Team has reached the maximum of {self._max_members} members")

        if team.members:
            team.members[_normalize(user_email)] = TeamRole.MEMBER
        else:
            team.member_emails.append(user_email)
        await self._save(teams)

        logger.info("teams.joined", team_id=team_id, user_email=user_email)
        return self._membership(_normalize(user_email), team_id, team)

    async def leave_team(self, user_email: str) -> None:
        """Remove ``user_email`` from their team.

        The last member leaving deletes the team. The last admin cannot
        leave while other members remain.

        Raises:
            TeamError: If the user is not in a team, or is the last admin.
        """
        membership = await self.get_user_team(user_email)
        if membership is None:
            raise TeamError("User is not a member of any team")

        teams = await self.get_teams()
        team = teams[membership.team_id]
        others = _without(_member_emails(team), user_email)
        other_admins = _without(_admin_emails(team), user_email)

        if not others:
            del teams[membership.team_id]
            logger.info("teams.deleted", team_id=membership.team_id)
        elif membership.role is TeamRole.ADMIN and not other_admins:
            raise TeamError("The last admin cannot leave while other members remain")
        else:
            team.member_emails = _without(team.member_emails, user_email)
            team.admin_emails = _without(team.admin_emails, user_email)
            team.members = {
                e: role for e, role in team.members.items()
                if _normalize(e) != _normalize(user_email)
            }

        await self._save(teams)
        logger.info("teams.left", team_id=membership.team_id, user_email=user_email)

    async def set_share_columns(self, team_id: str, share_columns: bool) -> TeamRecord:
        """Enable or disable team-shared column preferences.

        Raises:
            TeamNotFoundError: If the team does not exist.
        """
        teams = await self.get_teams()
        team = teams.get(team_id)
        if team is None:
            raise TeamNotFoundError(f"Team {team_id} not found")

        team.settings.share_columns = share_columns
        await self._save(teams)

        logger.info("teams.share_columns_updated", team_id=team_id, share_columns=share_columns)
        return team
