"""FastAPI dependency injection for the preference services and caller identity.

The services are created once in the application lifespan and stored on
``app.state``; these dependencies hand them to endpoint functions.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from src.sheetsync.columns.picker import ColumnPickerService
from src.sheetsync.preferences.store import PreferenceStore
from src.sheetsync.preferences.teams import TeamDirectory


def _from_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


async def get_preference_store(request: Request) -> PreferenceStore:
    """Retrieve the PreferenceStore from app.state, 503 if not available."""
    return _from_state(request, "preference_store", "Preference store")


async def get_team_directory(request: Request) -> TeamDirectory:
    """Retrieve the TeamDirectory from app.state, 503 if not available."""
    return _from_state(request, "team_directory", "Team directory")


async def get_picker_service(request: Request) -> ColumnPickerService:
    """Retrieve the ColumnPickerService from app.state, 503 if not available."""
    return _from_state(request, "picker_service", "Column picker")


async def get_user_email(
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
) -> str:
    """Caller identity supplied by the add-on host.

    Raises:
        HTTPException(400): If the X-User-Email header is missing or blank.
    """
    if not x_user_email or not x_user_email.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Email header is required",
        )
    return x_user_email.strip()
