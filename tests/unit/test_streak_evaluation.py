"""Streak claim windows and the 30-day reward table."""

from datetime import datetime, timedelta, timezone

import pytest

from codecase.progress.streak_service import (
    DAILY_REWARDS,
    MAX_STREAK,
    ClaimAction,
    evaluate_claim,
    next_streak,
    reward_for_day,
)

NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


def _ago(**kwargs: float) -> datetime:
    return NOW - timedelta(**kwargs)


class TestEvaluateClaim:
    """24h cooldown, 48h continuation window."""

    def test_first_claim_starts_streak(self):
        decision = evaluate_claim(None, NOW)
        assert decision.eligible is True
        assert decision.action is ClaimAction.START

    def test_within_cooldown_is_rejected(self):
        decision = evaluate_claim(_ago(hours=23, minutes=30), NOW)
        assert decision.eligible is False
        assert decision.action is None
        assert decision.hours_remaining == pytest.approx(0.5)

    def test_just_claimed_has_full_cooldown(self):
        decision = evaluate_claim(NOW, NOW)
        assert decision.eligible is False
        assert decision.hours_remaining == pytest.approx(24.0)

    def test_exactly_24h_continues(self):
        decision = evaluate_claim(_ago(hours=24), NOW)
        assert decision.eligible is True
        assert decision.action is ClaimAction.CONTINUE

    def test_30h_continues(self):
        assert evaluate_claim(_ago(hours=30), NOW).action is ClaimAction.CONTINUE

    def test_exactly_48h_continues(self):
        assert evaluate_claim(_ago(hours=48), NOW).action is ClaimAction.CONTINUE

    def test_just_over_48h_resets(self):
        assert evaluate_claim(_ago(hours=48, seconds=1), NOW).action is ClaimAction.RESET

    def test_50h_resets(self):
        decision = evaluate_claim(_ago(hours=50), NOW)
        assert decision.eligible is True
        assert decision.action is ClaimAction.RESET

    def test_future_claim_date_is_treated_as_just_claimed(self):
        """A last claim ahead of the storage clock never yields more than 24h to wait."""
        decision = evaluate_claim(NOW + timedelta(hours=2), NOW)
        assert decision.eligible is False
        assert decision.hours_remaining == pytest.approx(24.0)


class TestNextStreak:
    def test_start_and_reset_give_day_one(self):
        assert next_streak(0, ClaimAction.START) == 1
        assert next_streak(17, ClaimAction.RESET) == 1

    def test_continue_increments(self):
        assert next_streak(4, ClaimAction.CONTINUE) == 5

    def test_continue_is_capped(self):
        assert next_streak(MAX_STREAK, ClaimAction.CONTINUE) == MAX_STREAK
        assert next_streak(29, ClaimAction.CONTINUE) == 30


class TestDailyRewards:
    def test_table_has_thirty_sequential_days(self):
        assert len(DAILY_REWARDS) == 30
        assert [r.day for r in DAILY_REWARDS] == list(range(1, 31))

    def test_day_one_is_100_points(self):
        reward = reward_for_day(1)
        assert (reward.kind, reward.points, reward.hints) == ("points", 100, 0)

    def test_day_two_is_one_hint(self):
        reward = reward_for_day(2)
        assert (reward.kind, reward.points, reward.hints) == ("hints", 0, 1)

    def test_day_thirty_is_month_master(self):
        reward = reward_for_day(30)
        assert reward.kind == "achievement"
        assert reward.achievement_id == "month-master"
        assert reward.points == 1000
        assert reward.hints == 0

    def test_out_of_range_days_are_clamped(self):
        assert reward_for_day(0).day == 1
        assert reward_for_day(45).day == 30

    def test_only_day_thirty_grants_an_achievement(self):
        with_achievement = [r.day for r in DAILY_REWARDS if r.achievement_id]
        assert with_achievement == [30]
