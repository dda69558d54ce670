"""Administrative endpoints for the CMS."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from codecase.auth.dependencies import get_admin_identity
from codecase.auth.identity import Identity
from codecase.progress.router import get_progress_service
from codecase.progress.service import ProgressService

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


class AchievementResetResponse(BaseModel):
    users_affected: int
    message: str


@router.post("/achievements/reset", response_model=AchievementResetResponse)
async def reset_achievements(
    admin: Identity = Depends(get_admin_identity),
    service: ProgressService = Depends(get_progress_service),
):
    """Clear stored achievements for every user. Points are left untouched."""
    affected = await service.bulk_reset_achievements()
    return AchievementResetResponse(
        users_affected=affected,
        message=f"Reset stored achievements for {affected} users",
    )
