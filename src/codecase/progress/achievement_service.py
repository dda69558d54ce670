"""Stored (non-derivable) achievements: unlocking and administrative reset."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.db.models import UserAchievement, UserProgress
from codecase.errors import ValidationError
from codecase.progress.achievements import ACHIEVEMENTS_BY_ID, is_derivable
from codecase.progress.store import require_progress, storage_now

logger = structlog.get_logger()


async def store_achievement(
    db: AsyncSession,
    progress: UserProgress,
    achievement_id: str,
    *,
    source: str,
    now: datetime,
) -> bool:
    """Attach an achievement id to a locked progress row.

    Returns False if the user already holds it.
    """
    if any(a.achievement_id == achievement_id for a in progress.achievements):
        return False
    progress.achievements.append(
        UserAchievement(achievement_id=achievement_id, source=source, unlocked_at=now)
    )
    progress.updated_at = now
    return True


async def unlock_achievement(db: AsyncSession, user_id: str, achievement_id: str) -> bool:
    """Store a non-derivable achievement for a user. Caller commits.

    Returns True if newly unlocked, False if it was already held.

    Raises:
        ValidationError: Unknown id, or an id that is derived from progress.
        NotFoundError: No progress record.
    """
    if achievement_id not in ACHIEVEMENTS_BY_ID:
        msg = f"Unknown achievement: {achievement_id}"
        raise ValidationError(msg)
    if is_derivable(achievement_id):
        msg = f"Achievement {achievement_id} is derived from progress and cannot be unlocked directly"
        raise ValidationError(msg)

    progress = await require_progress(db, user_id, for_update=True)
    now = await storage_now(db)
    unlocked = await store_achievement(db, progress, achievement_id, source="manual", now=now)
    await db.flush()

    if unlocked:
        logger.info("achievement_unlocked", user_id=user_id, achievement_id=achievement_id)
    return unlocked


async def bulk_reset_achievements(db: AsyncSession) -> int:
    """Delete every stored achievement. Caller commits.

    Points, hints and all other progress are left untouched; derived
    achievements reappear on the next evaluation.

    Returns the number of users that had stored achievements.
    """
    affected = await db.scalar(select(func.count(distinct(UserAchievement.user_id))))
    await db.execute(delete(UserAchievement))
    logger.info("achievements_reset", users_affected=affected or 0)
    return affected or 0
