"""Hint purchases debit the hint balance, never points."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from codecase.db.models import PointsLedger
from codecase.errors import ProgressNotFoundError
from codecase.progress.hint_service import HINT_COST


async def _referred_user(service, register_user, user_id: str = "carol") -> None:
    """Register ``user_id`` through a referral so they start with 3 hints."""
    await register_user("alice")
    code = (await service.get_progress("alice")).referral_code
    await register_user(user_id, referral_code=code)


@pytest.mark.asyncio
async def test_purchase_debits_hints_only(service, register_user):
    await _referred_user(service, register_user)

    result = await service.spend_hints("carol", "case-vanishing-blogger", "hint-1")

    assert result.success is True
    assert result.charged is True
    assert result.cost == HINT_COST
    assert result.hints_remaining == 0
    carol = await service.get_progress("carol")
    assert carol.hints == 0
    assert carol.total_points == 700
    assert carol.level == 1


@pytest.mark.asyncio
async def test_purchase_is_written_to_ledger(service, register_user, db_session):
    await _referred_user(service, register_user)
    await service.spend_hints("carol", "case-vanishing-blogger", "hint-1")

    entry = await db_session.scalar(
        select(PointsLedger).where(PointsLedger.user_id == "carol", PointsLedger.source == "hint_purchase")
    )

    assert entry is not None
    assert entry.hints == -HINT_COST
    assert entry.points == 0
    assert entry.source_id == "case-vanishing-blogger:hint-1"


@pytest.mark.asyncio
async def test_insufficient_balance_is_rejected(service, register_user, db_session):
    await register_user("bob")

    result = await service.spend_hints("bob", "case-vanishing-blogger", "hint-1")

    assert result.success is False
    assert result.error == "insufficient_hints"
    assert result.hints_remaining == 2
    bob = await service.get_progress("bob")
    assert bob.hints == 2
    assert bob.total_points == 500
    purchases = await db_session.scalar(select(PointsLedger.id).where(PointsLedger.source == "hint_purchase"))
    assert purchases is None


@pytest.mark.asyncio
async def test_repeated_purchase_is_not_charged_twice(service, register_user):
    """Buying the same hint again returns the earlier purchase, even on an empty balance."""
    await _referred_user(service, register_user)
    await service.spend_hints("carol", "case-vanishing-blogger", "hint-1")

    again = await service.spend_hints("carol", "case-vanishing-blogger", "hint-1")

    assert again.success is True
    assert again.charged is False
    assert (await service.get_progress("carol")).hints == 0


@pytest.mark.asyncio
async def test_second_hint_needs_new_balance(service, register_user):
    await _referred_user(service, register_user)
    await service.spend_hints("carol", "case-vanishing-blogger", "hint-1")

    other = await service.spend_hints("carol", "case-vanishing-blogger", "hint-2")

    assert other.success is False
    assert other.error == "insufficient_hints"


@pytest.mark.asyncio
async def test_points_never_decrease(service, register_user):
    await _referred_user(service, register_user)
    before = (await service.get_progress("carol")).total_points

    await service.spend_hints("carol", "case-vanishing-blogger", "hint-1")
    await service.spend_hints("carol", "case-vanishing-blogger", "hint-2")
    await service.complete_case("carol", "case-vanishing-blogger", 150, 60)

    assert (await service.get_progress("carol")).total_points == before + 150


@pytest.mark.asyncio
@pytest.mark.parametrize(("case_id", "hint_id"), [("", "hint-1"), ("case-x", "  ")])
async def test_blank_ids_rejected(service, register_user, case_id, hint_id):
    await _referred_user(service, register_user)
    result = await service.spend_hints("carol", case_id, hint_id)
    assert result.error == "validation_error"
    assert (await service.get_progress("carol")).hints == 3


@pytest.mark.asyncio
async def test_purchase_without_progress_record(service, db_session):
    with pytest.raises(ProgressNotFoundError):
        await service.spend_hints("ghost", "case-x", "hint-1")
