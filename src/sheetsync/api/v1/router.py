"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.sheetsync.api.v1 import columns, health, teams

router = APIRouter()

router.include_router(health.router)
router.include_router(columns.router)
router.include_router(teams.router)
