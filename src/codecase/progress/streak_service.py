"""Daily login streak: claim eligibility, reward table, and claiming.

A claim is allowed once 24h have passed since the previous one. Claiming
within 48h continues the streak, later than that restarts it at day 1.
Every window is measured against the database clock.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.errors import EligibilityError
from codecase.progress.achievement_service import store_achievement
from codecase.progress.ledger import GrantOutcome, grant
from codecase.progress.store import as_utc, require_progress, storage_now

logger = structlog.get_logger()

CLAIM_COOLDOWN_HOURS = 24
STREAK_WINDOW_HOURS = 48
MAX_STREAK = 30


class ClaimAction(str, enum.Enum):
    START = "start"
    CONTINUE = "continue"
    RESET = "reset"


@dataclass(frozen=True)
class ClaimDecision:
    eligible: bool
    action: ClaimAction | None
    hours_remaining: float = 0.0
    hours_elapsed: float | None = None


@dataclass(frozen=True)
class DailyReward:
    day: int
    kind: str  # points | hints | achievement
    amount: int
    title: str
    description: str
    achievement_id: str | None = None

    @property
    def points(self) -> int:
        return self.amount if self.kind in ("points", "achievement") else 0

    @property
    def hints(self) -> int:
        return self.amount if self.kind == "hints" else 0


def _points(day: int, amount: int, title: str, description: str) -> DailyReward:
    return DailyReward(day, "points", amount, title, description)


def _hints(day: int, amount: int, title: str, description: str) -> DailyReward:
    return DailyReward(day, "hints", amount, title, description)


DAILY_REWARDS: tuple[DailyReward, ...] = (
    _points(1, 100, "First Day", "Welcome bonus"),
    _hints(2, 1, "Second Day", "Helpful hint"),
    _points(3, 150, "Third Day", "Keep going!"),
    _hints(4, 1, "Fourth Day", "Another clue"),
    _points(5, 200, "Fifth Day", "Week warrior"),
    _hints(6, 2, "Sixth Day", "Double hints"),
    _points(7, 300, "Week Complete", "Weekly bonus"),
    _hints(8, 1, "Eighth Day", "Back for more"),
    _points(9, 200, "Ninth Day", "Persistence pays"),
    _points(10, 250, "Tenth Day", "Double digits!"),
    _hints(11, 2, "Eleventh Day", "Helpful boost"),
    _points(12, 200, "Twelfth Day", "Steady progress"),
    _hints(13, 1, "Thirteenth Day", "Lucky hint"),
    _points(14, 400, "Two Weeks", "Fortnight champion"),
    _hints(15, 3, "Fifteenth Day", "Triple hints"),
    _points(16, 250, "Sixteenth Day", "Halfway hero"),
    _hints(17, 1, "Seventeenth Day", "Keep investigating"),
    _points(18, 300, "Eighteenth Day", "Almost there"),
    _hints(19, 2, "Nineteenth Day", "Clue collector"),
    _points(20, 500, "Twenty Days", "Major milestone"),
    _hints(21, 2, "Twenty-first Day", "Three weeks strong"),
    _points(22, 300, "Twenty-second Day", "Detective dedication"),
    _hints(23, 1, "Twenty-third Day", "Almost a month"),
    _points(24, 350, "Twenty-fourth Day", "Final stretch"),
    _hints(25, 3, "Twenty-fifth Day", "Final week boost"),
    _points(26, 400, "Twenty-sixth Day", "Nearing the end"),
    _hints(27, 2, "Twenty-seventh Day", "Last few days"),
    _points(28, 500, "Twenty-eighth Day", "Almost legendary"),
    _hints(29, 4, "Twenty-ninth Day", "Tomorrow is the day!"),
    DailyReward(30, "achievement", 1000, "Month Master", "Legendary detective!", achievement_id="month-master"),
)


def evaluate_claim(last_claim_date: datetime | None, now: datetime) -> ClaimDecision:
    """Decide whether a claim at ``now`` is allowed and what it does to the streak."""
    if last_claim_date is None:
        return ClaimDecision(eligible=True, action=ClaimAction.START)

    elapsed_hours = max((now - last_claim_date).total_seconds() / 3600, 0.0)

    if elapsed_hours < CLAIM_COOLDOWN_HOURS:
        return ClaimDecision(
            eligible=False,
            action=None,
            hours_remaining=CLAIM_COOLDOWN_HOURS - elapsed_hours,
            hours_elapsed=elapsed_hours,
        )
    if elapsed_hours <= STREAK_WINDOW_HOURS:
        return ClaimDecision(eligible=True, action=ClaimAction.CONTINUE, hours_elapsed=elapsed_hours)
    return ClaimDecision(eligible=True, action=ClaimAction.RESET, hours_elapsed=elapsed_hours)


def next_streak(current: int, action: ClaimAction) -> int:
    """Streak value after a claim with the given action (capped at 30)."""
    if action is ClaimAction.CONTINUE:
        return min(current + 1, MAX_STREAK)
    return 1


def reward_for_day(day: int) -> DailyReward:
    """Reward definition for a streak day (clamped to 1..30)."""
    day = min(max(day, 1), MAX_STREAK)
    return DAILY_REWARDS[day - 1]


@dataclass(frozen=True)
class ClaimOutcome:
    streak: int
    action: ClaimAction
    reward: DailyReward
    claimed_at: datetime
    grant: GrantOutcome
    achievement_unlocked: str | None = None


@dataclass(frozen=True)
class StreakStatus:
    login_streak: int
    effective_streak: int
    decision: ClaimDecision
    next_reward: DailyReward
    last_claim_date: datetime | None
    next_claim_at: datetime | None
    server_time: datetime


async def claim_daily_streak(db: AsyncSession, user_id: str) -> ClaimOutcome:
    """Claim today's reward. Caller commits.

    Eligibility is derived from the locked row and the database clock inside
    the same transaction as the update, so a concurrent or retried call sees
    the committed claim and is rejected.

    Raises:
        EligibilityError: Less than 24h since the last claim.
        NotFoundError: No progress record.
    """
    progress = await require_progress(db, user_id, for_update=True)
    now = await storage_now(db)

    decision = evaluate_claim(as_utc(progress.last_claim_date), now)
    if not decision.eligible or decision.action is None:
        msg = f"Next claim available in {decision.hours_remaining:.1f} hours"
        raise EligibilityError(msg, hours_remaining=decision.hours_remaining)

    streak = next_streak(progress.login_streak, decision.action)
    reward = reward_for_day(streak)

    outcome = await grant(
        db,
        progress,
        points=reward.points,
        hints=reward.hints,
        source="daily_claim",
        source_id=f"day-{streak}",
        description=f"Daily login day {streak}: {reward.title}",
        idempotency_key=f"daily:{user_id}:v{progress.version}",
        now=now,
    )

    unlocked = None
    if reward.achievement_id and await store_achievement(
        db, progress, reward.achievement_id, source="daily_streak", now=now
    ):
        unlocked = reward.achievement_id

    progress.login_streak = streak
    progress.last_claim_date = now
    progress.updated_at = now
    await db.flush()

    logger.info(
        "streak_claimed",
        user_id=user_id,
        streak=streak,
        action=decision.action.value,
        reward_kind=reward.kind,
        reward_amount=reward.amount,
    )
    return ClaimOutcome(
        streak=streak,
        action=decision.action,
        reward=reward,
        claimed_at=now,
        grant=outcome,
        achievement_unlocked=unlocked,
    )


async def get_streak_status(db: AsyncSession, user_id: str) -> StreakStatus:
    """Read-only view of the claim window for the daily-login modal."""
    progress = await require_progress(db, user_id)
    now = await storage_now(db)
    last = as_utc(progress.last_claim_date)
    decision = evaluate_claim(last, now)

    if decision.eligible and decision.action is not None:
        effective = 0 if decision.action is ClaimAction.RESET else progress.login_streak
        upcoming = next_streak(progress.login_streak, decision.action)
        next_claim_at = None
    else:
        effective = progress.login_streak
        upcoming = next_streak(progress.login_streak, ClaimAction.CONTINUE)
        next_claim_at = last + timedelta(hours=CLAIM_COOLDOWN_HOURS) if last else None

    return StreakStatus(
        login_streak=progress.login_streak,
        effective_streak=effective,
        decision=decision,
        next_reward=reward_for_day(upcoming),
        last_claim_date=last,
        next_claim_at=next_claim_at,
        server_time=now,
    )
