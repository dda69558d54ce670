"""Points/hints grants with idempotency and level recomputation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.db.models import PointsLedger, UserProgress
from codecase.progress.levels import compute_level


@dataclass(frozen=True)
class GrantOutcome:
    granted: bool
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


async def has_ledger_entry(db: AsyncSession, idempotency_key: str) -> bool:
    result = await db.execute(
        select(PointsLedger.id).where(PointsLedger.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none() is not None


async def grant(
    db: AsyncSession,
    progress: UserProgress,
    *,
    points: int,
    hints: int,
    source: str,
    source_id: str | None,
    description: str,
    idempotency_key: str,
    now: datetime,
) -> GrantOutcome:
    """Grant points and hints to a locked progress row.

    Returns ``granted=False`` (and changes nothing) if the idempotency key
    was already used. Otherwise:
    1. Insert into points_ledger
    2. Update total_points / hints
    3. Recompute level from total_points
    """
    old_level = progress.level
    if await has_ledger_entry(db, idempotency_key):
        return GrantOutcome(granted=False, old_level=old_level, new_level=old_level)

    db.add(PointsLedger(
        user_id=progress.id,
        points=points,
        hints=hints,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
    ))

    progress.total_points += points
    progress.hints += hints
    progress.level = compute_level(progress.total_points)
    progress.updated_at = now

    return GrantOutcome(granted=True, old_level=old_level, new_level=progress.level)


async def get_ledger(db: AsyncSession, user_id: str, limit: int = 50) -> list[PointsLedger]:
    """Most recent grants for a user."""
    result = await db.execute(
        select(PointsLedger)
        .where(PointsLedger.user_id == user_id)
        .order_by(PointsLedger.id.desc())
        .limit(limit)
    )
    return list(result.scalars())
