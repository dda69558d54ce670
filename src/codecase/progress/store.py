"""Progress store: row access and locking, the storage clock, referral codes.

Referral codes are 6-character alphanumeric (A-Z, 0-9), generated server-side
with a cryptographic random source and never regenerated.
"""

from __future__ import annotations

import secrets
import string
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.db.models import ReferralHistory, UserProgress
from codecase.errors import ProgressNotFoundError, StorageError
from codecase.progress.snapshot import EvidenceSnapshot, ProgressSnapshot

REFERRAL_CODE_CHARSET = string.ascii_uppercase + string.digits  # A-Z, 0-9
REFERRAL_CODE_LENGTH = 6
_CODE_ATTEMPTS = 10


def generate_referral_code() -> str:
    """Generate a cryptographically random 6-character referral code."""
    return "".join(secrets.choice(REFERRAL_CODE_CHARSET) for _ in range(REFERRAL_CODE_LENGTH))


def normalize_referral_code(code: str) -> str:
    """Normalize a referral code for case-insensitive lookup."""
    return code.strip().upper()


def is_well_formed_referral_code(code: str) -> bool:
    """True if ``code`` (already normalized) has the referral code shape."""
    return len(code) == REFERRAL_CODE_LENGTH and all(c in REFERRAL_CODE_CHARSET for c in code)


def as_utc(value: datetime | str | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite returns them without tzinfo)."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def storage_now(db: AsyncSession) -> datetime:
    """Current time according to the database clock.

    All claim windows are measured with this value, never with the
    caller's clock.
    """
    value = await db.scalar(select(func.now()))
    now = as_utc(value)
    if now is None:
        msg = "Storage clock returned no value"
        raise StorageError(msg)
    return now


async def get_progress(
    db: AsyncSession,
    user_id: str,
    *,
    for_update: bool = False,
) -> UserProgress | None:
    """Fetch a progress row, always refreshing it from the database.

    ``for_update`` takes a row lock (``SELECT ... FOR UPDATE``) where the
    backend supports it.
    """
    stmt = (
        select(UserProgress)
        .where(UserProgress.id == user_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def require_progress(
    db: AsyncSession,
    user_id: str,
    *,
    for_update: bool = False,
) -> UserProgress:
    """Like get_progress but raises ProgressNotFoundError for unknown users."""
    progress = await get_progress(db, user_id, for_update=for_update)
    if progress is None:
        msg = "No progress record for this user"
        raise ProgressNotFoundError(msg)
    return progress


async def lock_progress_rows(db: AsyncSession, user_ids: Iterable[str]) -> dict[str, UserProgress]:
    """Lock several progress rows in a stable (sorted) order to avoid deadlocks."""
    locked: dict[str, UserProgress] = {}
    for user_id in sorted(set(user_ids)):
        locked[user_id] = await require_progress(db, user_id, for_update=True)
    return locked


async def find_by_referral_code(db: AsyncSession, code: str) -> UserProgress | None:
    """Resolve a normalized referral code to its owner."""
    result = await db.execute(
        select(UserProgress)
        .where(UserProgress.referral_code == code)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def generate_unique_referral_code(db: AsyncSession) -> str:
    """Generate a referral code that doesn't already exist in the database."""
    for _ in range(_CODE_ATTEMPTS):
        code = generate_referral_code()
        existing = await db.execute(
            select(UserProgress.id).where(UserProgress.referral_code == code)
        )
        if existing.scalar_one_or_none() is None:
            return code
    msg = f"Failed to generate unique referral code after {_CODE_ATTEMPTS} attempts"
    raise StorageError(msg)


async def get_referral_history(db: AsyncSession, referrer_id: str) -> list[ReferralHistory]:
    """Referral history entries credited to a referrer, oldest first."""
    result = await db.execute(
        select(ReferralHistory)
        .where(ReferralHistory.referrer_id == referrer_id)
        .order_by(ReferralHistory.id.asc())
    )
    return list(result.scalars())


def build_snapshot(
    progress: UserProgress,
    history: Iterable[ReferralHistory] = (),
) -> ProgressSnapshot:
    """Copy a loaded progress row into an immutable snapshot."""
    return ProgressSnapshot(
        user_id=progress.id,
        email=progress.email,
        display_name=progress.display_name,
        total_points=progress.total_points,
        hints=progress.hints,
        level=progress.level,
        completed_cases=progress.completed_case_ids,
        evidence=tuple(
            EvidenceSnapshot(
                case_id=e.case_id,
                title=e.title,
                description=e.description,
                evidence_type=e.evidence_type,
                content=e.content,
                importance=e.importance,
                discovered_at=as_utc(e.discovered_at),
            )
            for e in progress.evidence
        ),
        achievements=frozenset(a.achievement_id for a in progress.achievements),
        referral_code=progress.referral_code,
        referred_by=progress.referred_by,
        total_referrals=progress.total_referrals,
        successful_referrals=progress.successful_referrals,
        total_rewards=progress.total_rewards,
        login_streak=progress.login_streak,
        last_claim_date=as_utc(progress.last_claim_date),
        total_cases_completed=progress.total_cases_completed,
        total_time_spent=progress.total_time_spent,
        average_case_time=progress.average_case_time,
        completion_streak=progress.completion_streak,
        best_completion_streak=progress.best_completion_streak,
        created_at=as_utc(progress.created_at),
        referral_history=tuple(
            {
                "referee_id": h.referee_id,
                "referee_email": h.referee_email,
                "code": h.code,
                "points_awarded": h.points_awarded,
                "hints_awarded": h.hints_awarded,
                "created_at": as_utc(h.created_at),
            }
            for h in history
        ),
    )
