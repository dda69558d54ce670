"""Immutable read model of a progress record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class EvidenceSnapshot:
    case_id: str
    title: str
    description: str
    evidence_type: str
    content: str
    importance: str
    discovered_at: datetime | None = None


@dataclass(frozen=True)
class ProgressSnapshot:
    """Point-in-time copy of a user's progress, safe to pass to pure functions."""

    user_id: str
    total_points: int = 0
    hints: int = 0
    level: int = 1
    completed_cases: frozenset[str] = frozenset()
    evidence: tuple[EvidenceSnapshot, ...] = ()
    achievements: frozenset[str] = frozenset()
    referral_code: str = ""
    referred_by: str | None = None
    total_referrals: int = 0
    successful_referrals: int = 0
    total_rewards: int = 0
    login_streak: int = 0
    last_claim_date: datetime | None = None
    total_cases_completed: int = 0
    total_time_spent: int = 0
    average_case_time: float = 0.0
    completion_streak: int = 0
    best_completion_streak: int = 0
    email: str | None = None
    display_name: str | None = None
    created_at: datetime | None = None
    referral_history: tuple[dict, ...] = field(default=())
