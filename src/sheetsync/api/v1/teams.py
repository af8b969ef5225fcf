"""REST API endpoints for team membership.

Team membership decides whether a user's column preferences are personal
or shared with the team.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.sheetsync.api.deps import get_team_directory, get_user_email
from src.sheetsync.columns.schemas import TeamMembership, TeamRecord, TeamRole
from src.sheetsync.preferences.teams import (
    TeamDirectory,
    TeamError,
    TeamLookupError,
    TeamNotFoundError,
)

router = APIRouter(prefix="/teams", tags=["teams"])


class CreateTeamRequest(BaseModel):
    name: str


class CreateTeamResponse(BaseModel):
    team_id: str
    team: TeamRecord


class TeamSettingsRequest(BaseModel):
    share_columns: bool


def _to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, TeamNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, TeamLookupError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/me", response_model=TeamMembership | None)
async def get_my_team(
    user_email: str = Depends(get_user_email),
    teams: TeamDirectory = Depends(get_team_directory),
) -> TeamMembership | None:
    try:
        return await teams.get_user_team(user_email)
    except TeamLookupError as exc:
        raise _to_http(exc) from exc


@router.post("", response_model=CreateTeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    body: CreateTeamRequest,
    user_email: str = Depends(get_user_email),
    teams: TeamDirectory = Depends(get_team_directory),
) -> CreateTeamResponse:
    try:
        team_id, team = await teams.create_team(body.name, user_email)
    except (TeamError, TeamLookupError) as exc:
        raise _to_http(exc) from exc
    return CreateTeamResponse(team_id=team_id, team=team)


@router.post("/{team_id}/join", response_model=TeamMembership)
async def join_team(
    team_id: str,
    user_email: str = Depends(get_user_email),
    teams: TeamDirectory = Depends(get_team_directory),
) -> TeamMembership:
    try:
        return await teams.join_team(team_id, user_email)
    except (TeamError, TeamLookupError) as exc:
        raise _to_http(exc) from exc


@router.post("/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_team(
    user_email: str = Depends(get_user_email),
    teams: TeamDirectory = Depends(get_team_directory),
) -> None:
    try:
        await teams.leave_team(user_email)
    except (TeamError, TeamLookupError) as exc:
        raise _to_http(exc) from exc


@router.put("/{team_id}/settings", response_model=TeamRecord)
async def update_team_settings(
    team_id: str,
    body: TeamSettingsRequest,
    user_email: str = Depends(get_user_email),
    teams: TeamDirectory = Depends(get_team_directory),
) -> TeamRecord:
    """Toggle team-shared column preferences (team admins only)."""
    try:
        membership = await teams.get_user_team(user_email)
        is_admin = (
            membership is not None
            and membership.team_id == team_id
            and membership.role is TeamRole.ADMIN
        )
        if not is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only team admins can change team settings",
            )
        return await teams.set_share_columns(team_id, body.share_columns)
    except (TeamError, TeamLookupError) as exc:
        raise _to_http(exc) from exc
