"""Pydantic request/response models for progress endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Requests ---


class RegisterRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=64)
    referral_code: str | None = Field(default=None, max_length=32)


class CaseCompletionRequest(BaseModel):
    points: int = 0
    time_spent: int = 0


class ApplyReferralRequest(BaseModel):
    code: str = Field(max_length=32)


class HintPurchaseRequest(BaseModel):
    case_id: str = Field(min_length=1, max_length=128)
    hint_id: str = Field(min_length=1, max_length=64)


# --- Progress ---


class EvidenceResponse(BaseModel):
    case_id: str
    title: str
    description: str
    evidence_type: str
    content: str
    importance: str
    discovered_at: datetime | None = None


class ReferralHistoryEntry(BaseModel):
    referee_id: str
    referee_email: str | None = None
    code: str
    points_awarded: int
    hints_awarded: int
    created_at: datetime | None = None


class ReferralStatsResponse(BaseModel):
    total_referrals: int
    successful_referrals: int
    total_rewards: int
    history: list[ReferralHistoryEntry] = []


class StatisticsResponse(BaseModel):
    total_cases_completed: int
    total_time_spent: int
    average_case_time: float
    completion_streak: int
    best_completion_streak: int


class ProgressResponse(BaseModel):
    user_id: str
    email: str | None = None
    display_name: str | None = None
    total_points: int
    hints: int
    level: int
    rank_title: str
    points_into_level: int
    points_for_level: int
    completed_cases: list[str]
    evidence: list[EvidenceResponse]
    achievements: list[str]
    referral_code: str
    referred_by: str | None = None
    referral_stats: ReferralStatsResponse
    login_streak: int
    last_claim_date: datetime | None = None
    statistics: StatisticsResponse
    created_at: datetime | None = None


class RegistrationResponse(BaseModel):
    created: bool
    referral_applied: bool
    referrer_credited: bool
    message: str
    error: str | None = None
    progress: ProgressResponse


# --- Cases ---


class CaseCompletionResponse(BaseModel):
    success: bool
    points_awarded: int = 0
    is_repeat: bool = False
    evidence_added: int = 0
    level: int | None = None
    message: str = ""
    error: str | None = None


# --- Streak ---


class DailyRewardResponse(BaseModel):
    day: int
    kind: str
    amount: int
    title: str
    description: str
    achievement_id: str | None = None


class StreakStatusResponse(BaseModel):
    login_streak: int
    effective_streak: int
    can_claim: bool
    action: str | None = None
    hours_remaining: float
    next_reward: DailyRewardResponse
    last_claim_date: datetime | None = None
    next_claim_at: datetime | None = None
    server_time: datetime


class StreakClaimResponse(BaseModel):
    success: bool
    streak: int = 0
    reward: DailyRewardResponse | None = None
    hours_remaining: float = 0.0
    achievement_unlocked: str | None = None
    message: str = ""
    error: str | None = None


class DailyRewardsResponse(BaseModel):
    rewards: list[DailyRewardResponse]


# --- Referrals ---


class ReferralResponse(BaseModel):
    success: bool
    message: str
    error: str | None = None
    points_awarded: int = 0
    hints_awarded: int = 0
    referrer_name: str | None = None


# --- Hints ---


class HintPurchaseResponse(BaseModel):
    success: bool
    charged: bool = False
    cost: int = 0
    hints_remaining: int | None = None
    message: str = ""
    error: str | None = None


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    rarity: str
    points: int
    derivable: bool


class AchievementCatalogueResponse(BaseModel):
    achievements: list[AchievementResponse]
    legend_exemption_count: int


class UserAchievementsResponse(BaseModel):
    unlocked: list[str]
    total_unlocked: int
    total_available: int


class AchievementUnlockResponse(BaseModel):
    success: bool
    achievement_id: str
    newly_unlocked: bool = False
    message: str = ""
    error: str | None = None


# --- Ledger ---


class LedgerEntryResponse(BaseModel):
    points: int
    hints: int
    source: str
    source_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None


class LedgerResponse(BaseModel):
    entries: list[LedgerEntryResponse]
