"""Referral codes: validation, application, and referrer credit.

A referee is credited once (``referred_by`` is write-once) and a referrer is
credited once per referee (``referral_history.referee_id`` is unique).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.db.models import ReferralHistory, UserProgress
from codecase.errors import ConflictError, NotFoundError, ProgressError, ValidationError
from codecase.progress.ledger import GrantOutcome, grant
from codecase.progress.store import (
    find_by_referral_code,
    generate_unique_referral_code,
    get_progress,
    is_well_formed_referral_code,
    lock_progress_rows,
    normalize_referral_code,
    require_progress,
    storage_now,
)

logger = structlog.get_logger()

BASE_POINTS = 500
BASE_HINTS = 2
REFEREE_BONUS_POINTS = 200
REFEREE_BONUS_HINTS = 1
REFERRER_REWARD_POINTS = 100
REFERRER_REWARD_HINTS = 1


@dataclass(frozen=True)
class ReferralOutcome:
    referrer_id: str
    code: str
    points_awarded: int
    hints_awarded: int
    referee_grant: GrantOutcome
    referrer_credited: bool


@dataclass(frozen=True)
class RegistrationOutcome:
    progress: UserProgress
    created: bool
    referrer_id: str | None = None
    referral_error: ProgressError | None = None


async def validate_referral_code(
    db: AsyncSession,
    code: str | None,
    caller_id: str | None = None,
) -> UserProgress:
    """Resolve a referral code to its owner.

    Raises:
        ValidationError: Not 6 characters of A-Z/0-9.
        NotFoundError: No user owns the code.
        ConflictError: The code belongs to ``caller_id``.
    """
    normalized = normalize_referral_code(code or "")
    if not is_well_formed_referral_code(normalized):
        msg = "Referral codes are 6 letters or digits"
        raise ValidationError(msg)

    referrer = await find_by_referral_code(db, normalized)
    if referrer is None:
        msg = "Invalid referral code"
        raise NotFoundError(msg)
    if caller_id is not None and referrer.id == caller_id:
        msg = "You cannot use your own referral code"
        raise ConflictError(msg)
    return referrer


async def has_referrer_credit(db: AsyncSession, referee_id: str) -> bool:
    result = await db.execute(
        select(ReferralHistory.id).where(ReferralHistory.referee_id == referee_id)
    )
    return result.scalar_one_or_none() is not None


async def credit_referrer(
    db: AsyncSession,
    referrer: UserProgress,
    *,
    referee_id: str,
    referee_email: str | None,
    code: str,
    now: datetime,
) -> bool:
    """Credit a locked referrer row for one referee.

    Returns False (and changes nothing) if this referee was already credited.
    """
    if await has_referrer_credit(db, referee_id):
        return False

    await grant(
        db,
        referrer,
        points=REFERRER_REWARD_POINTS,
        hints=REFERRER_REWARD_HINTS,
        source="referral_reward",
        source_id=referee_id,
        description="Referral reward",
        idempotency_key=f"referral:referrer:{referee_id}",
        now=now,
    )
    referrer.total_referrals += 1
    referrer.successful_referrals += 1
    referrer.total_rewards += REFERRER_REWARD_POINTS

    db.add(ReferralHistory(
        referrer_id=referrer.id,
        referee_id=referee_id,
        referee_email=referee_email,
        code=code,
        points_awarded=REFERRER_REWARD_POINTS,
        hints_awarded=REFERRER_REWARD_HINTS,
        created_at=now,
    ))
    return True


def _ensure_not_referred(referee: UserProgress) -> None:
    if referee.referred_by:
        msg = "You have already used a referral code"
        raise ConflictError(msg)


async def apply_referral(db: AsyncSession, user_id: str, code: str | None) -> ReferralOutcome:
    """Apply a referral code for an existing user. Caller commits.

    Both rows are locked in id order, then the referee bonus and the
    referrer credit are written in the same transaction.

    Raises:
        ValidationError, NotFoundError, ConflictError: see validate_referral_code.
        ConflictError: The user already used a referral code.
    """
    normalized = normalize_referral_code(code or "")
    _ensure_not_referred(await require_progress(db, user_id))
    referrer = await validate_referral_code(db, normalized, caller_id=user_id)

    locked = await lock_progress_rows(db, [user_id, referrer.id])
    referee = locked[user_id]
    referrer = locked[referrer.id]
    _ensure_not_referred(referee)

    now = await storage_now(db)
    outcome = await grant(
        db,
        referee,
        points=REFEREE_BONUS_POINTS,
        hints=REFEREE_BONUS_HINTS,
        source="referral_bonus",
        source_id=normalized,
        description="Referral bonus",
        idempotency_key=f"referral:referee:{user_id}",
        now=now,
    )
    referee.referred_by = normalized

    credited = await credit_referrer(
        db, referrer, referee_id=referee.id, referee_email=referee.email, code=normalized, now=now
    )
    await db.flush()

    logger.info("referral_applied", user_id=user_id, referrer_id=referrer.id, code=normalized)
    return ReferralOutcome(
        referrer_id=referrer.id,
        code=normalized,
        points_awarded=REFEREE_BONUS_POINTS,
        hints_awarded=REFEREE_BONUS_HINTS,
        referee_grant=outcome,
        referrer_credited=credited,
    )


async def register_progress(
    db: AsyncSession,
    user_id: str,
    *,
    email: str | None,
    display_name: str | None,
    referral_code: str | None = None,
) -> RegistrationOutcome:
    """Create the progress record for a new user. Caller commits.

    An existing record is returned unchanged. A referral code that fails
    validation does not block registration: the record is created without
    the bonus and ``referral_error`` says why. The referrer is not credited
    here; see settle_referrer_credit.
    """
    existing = await get_progress(db, user_id)
    if existing is not None:
        return RegistrationOutcome(progress=existing, created=False)

    referrer: UserProgress | None = None
    referral_error: ProgressError | None = None
    if referral_code:
        try:
            referrer = await validate_referral_code(db, referral_code, caller_id=user_id)
        except (ValidationError, NotFoundError, ConflictError) as exc:
            referral_error = exc

    now = await storage_now(db)
    progress = UserProgress(
        id=user_id,
        email=email,
        display_name=display_name,
        total_points=0,
        hints=0,
        level=1,
        referral_code=await generate_unique_referral_code(db),
        total_referrals=0,
        successful_referrals=0,
        total_rewards=0,
        login_streak=0,
        total_cases_completed=0,
        total_time_spent=0,
        average_case_time=0.0,
        completion_streak=0,
        best_completion_streak=0,
        completed_cases=[],
        evidence=[],
        achievements=[],
        created_at=now,
        updated_at=now,
    )
    db.add(progress)
    await db.flush()

    await grant(
        db,
        progress,
        points=BASE_POINTS,
        hints=BASE_HINTS,
        source="signup",
        source_id=None,
        description="Welcome bonus",
        idempotency_key=f"signup:{user_id}",
        now=now,
    )
    if referrer is not None:
        await grant(
            db,
            progress,
            points=REFEREE_BONUS_POINTS,
            hints=REFEREE_BONUS_HINTS,
            source="referral_bonus",
            source_id=referrer.referral_code,
            description="Referral bonus",
            idempotency_key=f"referral:referee:{user_id}",
            now=now,
        )
        progress.referred_by = referrer.referral_code
    await db.flush()

    logger.info(
        "progress_registered",
        user_id=user_id,
        referred=referrer is not None,
        referral_error=referral_error.code if referral_error else None,
    )
    return RegistrationOutcome(
        progress=progress,
        created=True,
        referrer_id=referrer.id if referrer else None,
        referral_error=referral_error,
    )


async def settle_referrer_credit(db: AsyncSession, user_id: str) -> bool:
    """Credit the referrer of ``user_id`` if that has not happened yet. Caller commits.

    Returns True only when this call wrote the credit.
    """
    referee = await require_progress(db, user_id)
    if not referee.referred_by or await has_referrer_credit(db, user_id):
        return False

    referrer = await find_by_referral_code(db, referee.referred_by)
    if referrer is None:
        logger.warning("referrer_missing", user_id=user_id, code=referee.referred_by)
        return False

    locked = await lock_progress_rows(db, [referrer.id])
    now = await storage_now(db)
    credited = await credit_referrer(
        db,
        locked[referrer.id],
        referee_id=referee.id,
        referee_email=referee.email,
        code=referee.referred_by,
        now=now,
    )
    await db.flush()
    if credited:
        logger.info("referrer_credited", user_id=user_id, referrer_id=referrer.id)
    return credited
