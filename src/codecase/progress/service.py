"""Progress service: the entry point for every progression operation.

Each mutating call runs in its own transaction. A transaction that lost a
race (stale version or unique-constraint violation) is rolled back and
re-run from fresh state, up to ``progress_write_attempts`` times.

Rejections (validation, eligibility, conflict, unknown referral code) come
back as result objects with ``success=False``. ``StorageError`` is raised
after rollback and is always safe to retry. ``ProgressNotFoundError`` is
raised when the caller has no progress record.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from codecase.auth.identity import Identity
from codecase.config import Settings, get_settings
from codecase.db.models import PointsLedger
from codecase.errors import (
    ConflictError,
    EligibilityError,
    InsufficientHintsError,
    NotFoundError,
    ProgressError,
    ProgressNotFoundError,
    StorageError,
    ValidationError,
)
from codecase.events import (
    CHANNEL_CASE_COMPLETED,
    CHANNEL_HINT_PURCHASED,
    CHANNEL_REFERRAL_APPLIED,
    CHANNEL_STREAK_CLAIMED,
    publish_event,
    publish_level_up,
)
from codecase.progress import (
    achievement_service,
    case_service,
    hint_service,
    referral_service,
    streak_service,
)
from codecase.progress.achievements import derive_achievements
from codecase.progress.ledger import GrantOutcome, get_ledger
from codecase.progress.snapshot import ProgressSnapshot
from codecase.progress.store import build_snapshot, get_progress, get_referral_history
from codecase.progress.streak_service import DailyReward, StreakStatus

logger = structlog.get_logger()

T = TypeVar("T")

REJECTIONS = (ValidationError, EligibilityError, ConflictError, NotFoundError)


@dataclass(frozen=True)
class CaseCompletionResult:
    success: bool
    points_awarded: int = 0
    is_repeat: bool = False
    evidence_added: int = 0
    level: int | None = None
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class StreakClaimResult:
    success: bool
    streak: int = 0
    reward: DailyReward | None = None
    hours_remaining: float = 0.0
    achievement_unlocked: str | None = None
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ReferralResult:
    success: bool
    message: str
    error: str | None = None
    points_awarded: int = 0
    hints_awarded: int = 0
    referrer_name: str | None = None


@dataclass(frozen=True)
class RegistrationResult:
    progress: ProgressSnapshot
    created: bool
    referral_applied: bool
    referrer_credited: bool
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class HintPurchaseResult:
    success: bool
    charged: bool = False
    cost: int = 0
    hints_remaining: int | None = None
    message: str = ""
    error: str | None = None


@dataclass(frozen=True)
class AchievementUnlockResult:
    success: bool
    achievement_id: str
    newly_unlocked: bool = False
    message: str = ""
    error: str | None = None


def _raise_if_missing_progress(exc: ProgressError) -> None:
    if isinstance(exc, ProgressNotFoundError):
        raise exc


class ProgressService:
    """Injectable facade over the progress engines."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.settings = settings or get_settings()

    async def _with_retry(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` and commit, retrying transactions that lost a race."""
        attempts = max(self.settings.progress_write_attempts, 1)
        last_error: SQLAlchemyError | None = None
        for attempt in range(1, attempts + 1):
            try:
                result = await operation()
                await self.db.commit()
                return result
            except ProgressError:
                await self.db.rollback()
                raise
            except (StaleDataError, IntegrityError) as e:
                await self.db.rollback()
                last_error = e
                logger.warning("progress_write_conflict", operation=name, attempt=attempt, error=str(e))
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error("progress_write_failed", operation=name, error=str(e))
                msg = "Progress store unavailable, please retry"
                raise StorageError(msg) from e

        msg = f"{name} did not complete after {attempts} attempts, please retry"
        raise StorageError(msg) from last_error

    async def _read(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a read-only operation and end its transaction."""
        try:
            result = await operation()
            await self.db.commit()
            return result
        except ProgressError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            msg = "Progress store unavailable, please retry"
            raise StorageError(msg) from e

    async def _publish_level_up(self, user_id: str, grant: GrantOutcome | None) -> None:
        if grant is not None and grant.leveled_up:
            await publish_level_up(self.redis, user_id, grant.old_level, grant.new_level)

    # --- Reads ---

    async def get_progress(self, user_id: str) -> ProgressSnapshot:
        """Current progress for a user, including referral history."""

        async def _load() -> ProgressSnapshot:
            progress = await get_progress(self.db, user_id)
            if progress is None:
                msg = "No progress record for this user"
                raise ProgressNotFoundError(msg)
            history = await get_referral_history(self.db, user_id)
            return build_snapshot(progress, history)

        return await self._read(_load)

    async def streak_status(self, user_id: str) -> StreakStatus:
        return await self._read(lambda: streak_service.get_streak_status(self.db, user_id))

    async def ledger(self, user_id: str, limit: int = 50) -> list[PointsLedger]:
        """Most recent grants, newest first."""
        return await self._read(lambda: get_ledger(self.db, user_id, limit))

    def derive_achievements(self, progress: ProgressSnapshot) -> frozenset[str]:
        """Unlocked achievements for a snapshot. Pure; never touches the store."""
        return derive_achievements(progress, self.settings.legend_exemption_count)

    # --- Registration & referrals ---

    async def register(
        self,
        identity: Identity,
        display_name: str | None = None,
        referral_code: str | None = None,
    ) -> RegistrationResult:
        """Create the caller's progress record, or return the existing one.

        The referrer is credited in a separate transaction. If that step
        fails the registration still stands, and calling ``register`` or
        ``settle_referrer_credit`` again completes the credit exactly once.
        """
        outcome = await self._with_retry(
            "register",
            lambda: referral_service.register_progress(
                self.db,
                identity.user_id,
                email=identity.email,
                display_name=display_name,
                referral_code=referral_code,
            ),
        )
        referred_by = outcome.progress.referred_by

        referrer_credited = False
        if referred_by:
            try:
                newly_credited = await self.settle_referrer_credit(identity.user_id)
            except StorageError:
                logger.warning("referrer_credit_deferred", user_id=identity.user_id)
            else:
                referrer_credited = newly_credited or await self._read(
                    lambda: referral_service.has_referrer_credit(self.db, identity.user_id)
                )
                if newly_credited:
                    await publish_event(self.redis, CHANNEL_REFERRAL_APPLIED, {
                        "user_id": identity.user_id,
                        "referrer_id": outcome.referrer_id,
                        "code": referred_by,
                    })

        snapshot = await self.get_progress(identity.user_id)
        error = outcome.referral_error
        if not outcome.created:
            message = "Welcome back, detective!"
        elif error is not None:
            message = f"Account created. Referral code not applied: {error.message}"
        elif outcome.referrer_id:
            message = (
                f"Welcome! You received {referral_service.REFEREE_BONUS_POINTS} bonus points "
                f"and {referral_service.REFEREE_BONUS_HINTS} extra hint for using a referral code."
            )
        else:
            message = "Welcome to CodeCase, detective!"

        return RegistrationResult(
            progress=snapshot,
            created=outcome.created,
            referral_applied=referred_by is not None,
            referrer_credited=referrer_credited,
            message=message,
            error=error.code if error else None,
        )

    async def validate_referral(self, code: str | None, caller_id: str | None = None) -> ReferralResult:
        """Check a referral code without applying it."""
        try:
            referrer = await self._read(
                lambda: referral_service.validate_referral_code(self.db, code, caller_id=caller_id)
            )
        except REJECTIONS as e:
            _raise_if_missing_progress(e)
            return ReferralResult(success=False, message=e.message, error=e.code)
        return ReferralResult(
            success=True,
            message="Valid referral code",
            referrer_name=referrer.display_name,
        )

    async def apply_referral(self, user_id: str, code: str | None) -> ReferralResult:
        """Apply a referral code for an existing user. Succeeds at most once per user."""
        try:
            outcome = await self._with_retry(
                "apply_referral", lambda: referral_service.apply_referral(self.db, user_id, code)
            )
        except REJECTIONS as e:
            _raise_if_missing_progress(e)
            return ReferralResult(success=False, message=e.message, error=e.code)

        await publish_event(self.redis, CHANNEL_REFERRAL_APPLIED, {
            "user_id": user_id,
            "referrer_id": outcome.referrer_id,
            "code": outcome.code,
        })
        await self._publish_level_up(user_id, outcome.referee_grant)
        return ReferralResult(
            success=True,
            message=(
                f"Referral code applied! You earned {outcome.points_awarded} points "
                f"and {outcome.hints_awarded} hint!"
            ),
            points_awarded=outcome.points_awarded,
            hints_awarded=outcome.hints_awarded,
        )

    async def settle_referrer_credit(self, user_id: str) -> bool:
        """Credit the caller's referrer if still pending. True if this call credited."""
        return await self._with_retry(
            "settle_referrer_credit",
            lambda: referral_service.settle_referrer_credit(self.db, user_id),
        )

    # --- Cases ---

    async def complete_case(
        self,
        user_id: str,
        case_id: str,
        points: int,
        time_spent: int,
    ) -> CaseCompletionResult:
        try:
            outcome = await self._with_retry(
                "complete_case",
                lambda: case_service.complete_case(self.db, user_id, case_id, points, time_spent),
            )
        except REJECTIONS as e:
            _raise_if_missing_progress(e)
            return CaseCompletionResult(success=False, message=e.message, error=e.code)

        await publish_event(self.redis, CHANNEL_CASE_COMPLETED, {
            "user_id": user_id,
            "case_id": case_id,
            "points_awarded": outcome.points_awarded,
            "is_repeat": outcome.is_repeat,
        })
        await self._publish_level_up(user_id, outcome.grant)

        if outcome.points_awarded:
            message = f"Case solved! You earned {outcome.points_awarded} points."
        elif outcome.is_repeat:
            message = "Case replayed. No points awarded for repeat completions."
        else:
            message = "Case solved!"
        return CaseCompletionResult(
            success=True,
            points_awarded=outcome.points_awarded,
            is_repeat=outcome.is_repeat,
            evidence_added=outcome.evidence_added,
            level=outcome.grant.new_level if outcome.grant else None,
            message=message,
        )

    # --- Daily streak ---

    async def claim_daily_streak(self, user_id: str) -> StreakClaimResult:
        try:
            outcome = await self._with_retry(
                "claim_daily_streak", lambda: streak_service.claim_daily_streak(self.db, user_id)
            )
        except EligibilityError as e:
            return StreakClaimResult(
                success=False,
                hours_remaining=e.hours_remaining,
                message=e.message,
                error=e.code,
            )

        await publish_event(self.redis, CHANNEL_STREAK_CLAIMED, {
            "user_id": user_id,
            "streak": outcome.streak,
            "reward_kind": outcome.reward.kind,
            "reward_amount": outcome.reward.amount,
        })
        await self._publish_level_up(user_id, outcome.grant)
        return StreakClaimResult(
            success=True,
            streak=outcome.streak,
            reward=outcome.reward,
            achievement_unlocked=outcome.achievement_unlocked,
            message=f"Day {outcome.streak}: {outcome.reward.title}!",
        )

    # --- Hints ---

    async def spend_hints(
        self,
        user_id: str,
        case_id: str,
        hint_id: str,
        cost: int = hint_service.HINT_COST,
    ) -> HintPurchaseResult:
        """Buy a hint. Retrying the same purchase never charges twice."""
        try:
            outcome = await self._with_retry(
                "spend_hints",
                lambda: hint_service.spend_hints(self.db, user_id, case_id, hint_id, cost),
            )
        except InsufficientHintsError as e:
            return HintPurchaseResult(
                success=False,
                cost=e.cost,
                hints_remaining=e.balance,
                message=e.message,
                error=e.code,
            )
        except REJECTIONS as e:
            _raise_if_missing_progress(e)
            return HintPurchaseResult(success=False, cost=cost, message=e.message, error=e.code)

        if outcome.charged:
            await publish_event(self.redis, CHANNEL_HINT_PURCHASED, {
                "user_id": user_id,
                "case_id": case_id,
                "hint_id": hint_id,
                "cost": outcome.cost,
            })
        return HintPurchaseResult(
            success=True,
            charged=outcome.charged,
            cost=outcome.cost,
            hints_remaining=outcome.hints_remaining,
            message="Hint unlocked!" if outcome.charged else "Hint already unlocked",
        )

    # --- Achievements ---

    async def unlock_achievement(self, user_id: str, achievement_id: str) -> AchievementUnlockResult:
        try:
            newly = await self._with_retry(
                "unlock_achievement",
                lambda: achievement_service.unlock_achievement(self.db, user_id, achievement_id),
            )
        except REJECTIONS as e:
            _raise_if_missing_progress(e)
            return AchievementUnlockResult(
                success=False, achievement_id=achievement_id, message=e.message, error=e.code
            )
        return AchievementUnlockResult(
            success=True,
            achievement_id=achievement_id,
            newly_unlocked=newly,
            message="Achievement unlocked!" if newly else "Achievement already unlocked",
        )

    async def bulk_reset_achievements(self) -> int:
        """Administrative override: clear stored achievements for every user."""
        return await self._with_retry(
            "bulk_reset_achievements",
            lambda: achievement_service.bulk_reset_achievements(self.db),
        )
