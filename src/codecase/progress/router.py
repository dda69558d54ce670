"""Progress API endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.auth.dependencies import get_current_identity
from codecase.auth.identity import Identity
from codecase.config import get_settings
from codecase.database import get_session
from codecase.progress.achievements import ACHIEVEMENTS, ACHIEVEMENTS_BY_ID, LEGEND, is_derivable
from codecase.progress.levels import level_progress
from codecase.progress.schemas import (
    AchievementCatalogueResponse,
    AchievementResponse,
    AchievementUnlockResponse,
    ApplyReferralRequest,
    CaseCompletionRequest,
    CaseCompletionResponse,
    DailyRewardResponse,
    DailyRewardsResponse,
    EvidenceResponse,
    HintPurchaseRequest,
    HintPurchaseResponse,
    LedgerEntryResponse,
    LedgerResponse,
    ProgressResponse,
    ReferralHistoryEntry,
    ReferralResponse,
    ReferralStatsResponse,
    RegisterRequest,
    RegistrationResponse,
    StatisticsResponse,
    StreakClaimResponse,
    StreakStatusResponse,
    UserAchievementsResponse,
)
from codecase.progress.service import ProgressService
from codecase.progress.snapshot import ProgressSnapshot
from codecase.progress.streak_service import DAILY_REWARDS, DailyReward
from codecase.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1", tags=["Progress"])


def get_progress_service(
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_optional_redis),
) -> ProgressService:
    return ProgressService(db, redis, get_settings())


def _reward(reward: DailyReward | None) -> DailyRewardResponse | None:
    if reward is None:
        return None
    return DailyRewardResponse(
        day=reward.day,
        kind=reward.kind,
        amount=reward.amount,
        title=reward.title,
        description=reward.description,
        achievement_id=reward.achievement_id,
    )


def _progress_response(snapshot: ProgressSnapshot, unlocked: frozenset[str]) -> ProgressResponse:
    info = level_progress(snapshot.total_points)
    return ProgressResponse(
        user_id=snapshot.user_id,
        email=snapshot.email,
        display_name=snapshot.display_name,
        total_points=snapshot.total_points,
        hints=snapshot.hints,
        level=snapshot.level,
        rank_title=info["rank_title"],
        points_into_level=info["points_into_level"],
        points_for_level=info["points_for_level"],
        completed_cases=sorted(snapshot.completed_cases),
        evidence=[EvidenceResponse(**asdict(e)) for e in snapshot.evidence],
        achievements=sorted(unlocked),
        referral_code=snapshot.referral_code,
        referred_by=snapshot.referred_by,
        referral_stats=ReferralStatsResponse(
            total_referrals=snapshot.total_referrals,
            successful_referrals=snapshot.successful_referrals,
            total_rewards=snapshot.total_rewards,
            history=[ReferralHistoryEntry(**h) for h in snapshot.referral_history],
        ),
        login_streak=snapshot.login_streak,
        last_claim_date=snapshot.last_claim_date,
        statistics=StatisticsResponse(
            total_cases_completed=snapshot.total_cases_completed,
            total_time_spent=snapshot.total_time_spent,
            average_case_time=snapshot.average_case_time,
            completion_streak=snapshot.completion_streak,
            best_completion_streak=snapshot.best_completion_streak,
        ),
        created_at=snapshot.created_at,
    )


# ── Public endpoints ──


@router.get("/achievements", response_model=AchievementCatalogueResponse)
async def list_achievements():
    """Full achievement catalogue."""
    return AchievementCatalogueResponse(
        achievements=[
            AchievementResponse(
                id=a.id,
                name=a.name,
                description=a.description,
                category=a.category,
                rarity=a.rarity,
                points=a.points,
                derivable=is_derivable(a.id),
            )
            for a in (*ACHIEVEMENTS, LEGEND)
        ],
        legend_exemption_count=get_settings().legend_exemption_count,
    )


@router.get("/streak/rewards", response_model=DailyRewardsResponse)
async def list_daily_rewards():
    """The 30-day login reward table."""
    return DailyRewardsResponse(rewards=[_reward(r) for r in DAILY_REWARDS])


# ── Authenticated endpoints ──


@router.post("/progress/register", response_model=RegistrationResponse)
async def register(
    body: RegisterRequest,
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    """Create the caller's progress record (idempotent)."""
    result = await service.register(identity, body.display_name, body.referral_code)
    return RegistrationResponse(
        created=result.created,
        referral_applied=result.referral_applied,
        referrer_credited=result.referrer_credited,
        message=result.message,
        error=result.error,
        progress=_progress_response(result.progress, service.derive_achievements(result.progress)),
    )


@router.get("/progress/me", response_model=ProgressResponse)
async def get_my_progress(
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    snapshot = await service.get_progress(identity.user_id)
    return _progress_response(snapshot, service.derive_achievements(snapshot))


@router.post("/progress/me/cases/{case_id}/complete", response_model=CaseCompletionResponse)
async def complete_case(
    case_id: str,
    body: CaseCompletionRequest,
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    result = await service.complete_case(identity.user_id, case_id, body.points, body.time_spent)
    return CaseCompletionResponse(**asdict(result))


@router.get("/progress/me/streak", response_model=StreakStatusResponse)
async def get_streak(
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    """Claim window and next reward for the daily-login modal."""
    status = await service.streak_status(identity.user_id)
    return StreakStatusResponse(
        login_streak=status.login_streak,
        effective_streak=status.effective_streak,
        can_claim=status.decision.eligible,
        action=status.decision.action.value if status.decision.action else None,
        hours_remaining=status.decision.hours_remaining,
        next_reward=_reward(status.next_reward),
        last_claim_date=status.last_claim_date,
        next_claim_at=status.next_claim_at,
        server_time=status.server_time,
    )


@router.post("/progress/me/streak/claim", response_model=StreakClaimResponse)
async def claim_streak(
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    result = await service.claim_daily_streak(identity.user_id)
    return StreakClaimResponse(
        success=result.success,
        streak=result.streak,
        reward=_reward(result.reward),
        hours_remaining=result.hours_remaining,
        achievement_unlocked=result.achievement_unlocked,
        message=result.message,
        error=result.error,
    )


@router.get("/referrals/{code}/validate", response_model=ReferralResponse)
async def validate_referral(
    code: str,
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    result = await service.validate_referral(code, caller_id=identity.user_id)
    return ReferralResponse(**asdict(result))


@router.post("/progress/me/referral", response_model=ReferralResponse)
async def apply_referral(
    body: ApplyReferralRequest,
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    result = await service.apply_referral(identity.user_id, body.code)
    return ReferralResponse(**asdict(result))


@router.post("/progress/me/hints/spend", response_model=HintPurchaseResponse)
async def spend_hints(
    body: HintPurchaseRequest,
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    """Buy a hint for a case with hint points."""
    result = await service.spend_hints(identity.user_id, body.case_id, body.hint_id)
    return HintPurchaseResponse(**asdict(result))


@router.get("/progress/me/achievements", response_model=UserAchievementsResponse)
async def get_my_achievements(
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    snapshot = await service.get_progress(identity.user_id)
    unlocked = service.derive_achievements(snapshot)
    return UserAchievementsResponse(
        unlocked=sorted(unlocked),
        total_unlocked=len(unlocked),
        total_available=len(ACHIEVEMENTS_BY_ID),
    )


@router.post("/progress/me/achievements/{achievement_id}/unlock", response_model=AchievementUnlockResponse)
async def unlock_achievement(
    achievement_id: str,
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    result = await service.unlock_achievement(identity.user_id, achievement_id)
    return AchievementUnlockResponse(**asdict(result))


@router.get("/progress/me/ledger", response_model=LedgerResponse)
async def get_my_ledger(
    limit: int = Query(default=50, ge=1, le=200),
    identity: Identity = Depends(get_current_identity),
    service: ProgressService = Depends(get_progress_service),
):
    """Most recent point and hint grants."""
    entries = await service.ledger(identity.user_id, limit=limit)
    return LedgerResponse(entries=[
        LedgerEntryResponse(
            points=e.points,
            hints=e.hints,
            source=e.source,
            source_id=e.source_id,
            description=e.description,
            created_at=e.created_at,
        )
        for e in entries
    ])
