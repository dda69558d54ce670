"""Stored achievements: manual unlock and administrative reset."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from codecase.db.models import UserAchievement
from codecase.errors import ProgressNotFoundError


@pytest.mark.asyncio
async def test_unlock_special_achievement(service, register_user):
    await register_user("u1")

    result = await service.unlock_achievement("u1", "speed-demon")

    assert result.success is True
    assert result.newly_unlocked is True
    progress = await service.get_progress("u1")
    assert progress.achievements == frozenset({"speed-demon"})
    assert "speed-demon" in service.derive_achievements(progress)


@pytest.mark.asyncio
async def test_unlock_is_idempotent(service, register_user, db_session):
    await register_user("u1")
    await service.unlock_achievement("u1", "speed-demon")

    again = await service.unlock_achievement("u1", "speed-demon")

    assert again.success is True
    assert again.newly_unlocked is False
    count = await db_session.scalar(
        select(func.count()).select_from(UserAchievement).where(UserAchievement.user_id == "u1")
    )
    assert count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("achievement_id", ["first-detective", "legend", "master-recruiter"])
async def test_derivable_achievements_cannot_be_unlocked(service, register_user, achievement_id):
    await register_user("u1")

    result = await service.unlock_achievement("u1", achievement_id)

    assert result.success is False
    assert result.error == "validation_error"
    assert (await service.get_progress("u1")).achievements == frozenset()


@pytest.mark.asyncio
async def test_unknown_achievement(service, register_user):
    await register_user("u1")
    result = await service.unlock_achievement("u1", "time-traveller")
    assert result.success is False
    assert result.error == "validation_error"


@pytest.mark.asyncio
async def test_unlock_without_progress_record(service, db_session):
    with pytest.raises(ProgressNotFoundError):
        await service.unlock_achievement("ghost", "speed-demon")


@pytest.mark.asyncio
async def test_bulk_reset_clears_stored_achievements_only(service, register_user, db_session):
    await register_user("u1")
    await register_user("u2")
    await register_user("u3")
    await service.unlock_achievement("u1", "speed-demon")
    await service.unlock_achievement("u1", "perfect-score")
    await service.unlock_achievement("u2", "no-hints-hero")
    await service.complete_case("u1", "case-vanishing-blogger", 150, 120)

    affected = await service.bulk_reset_achievements()

    assert affected == 2
    remaining = await db_session.scalar(select(func.count()).select_from(UserAchievement))
    assert remaining == 0
    u1 = await service.get_progress("u1")
    assert u1.achievements == frozenset()
    assert u1.total_points == 650
    assert u1.completed_cases == {"case-vanishing-blogger"}
    # derived achievements come straight back
    assert "first-detective" in service.derive_achievements(u1)


@pytest.mark.asyncio
async def test_bulk_reset_with_nothing_stored(service, register_user):
    await register_user("u1")
    assert await service.bulk_reset_achievements() == 0
