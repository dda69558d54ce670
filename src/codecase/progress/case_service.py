"""Case completion: points, statistics and evidence.

Points are only granted for a user's very first case completion. Every
later completion, including cases the user has never finished before,
awards nothing. Evidence is handed out the first time each case is done.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.db.models import CompletedCase, EvidenceRecord
from codecase.errors import ValidationError
from codecase.progress.evidence_templates import evidence_for_case
from codecase.progress.ledger import GrantOutcome, grant
from codecase.progress.levels import compute_level
from codecase.progress.store import require_progress, storage_now

logger = structlog.get_logger()


@dataclass(frozen=True)
class CaseOutcome:
    points_awarded: int
    is_repeat: bool
    evidence_added: int
    grant: GrantOutcome | None = None


def _validate(case_id: str, points: int, time_spent: int) -> str:
    case_id = (case_id or "").strip()
    if not case_id:
        msg = "case_id is required"
        raise ValidationError(msg)
    if points < 0:
        msg = "points must not be negative"
        raise ValidationError(msg)
    if time_spent < 0:
        msg = "time_spent must not be negative"
        raise ValidationError(msg)
    return case_id


async def complete_case(
    db: AsyncSession,
    user_id: str,
    case_id: str,
    points: int,
    time_spent: int,
) -> CaseOutcome:
    """Record a case completion for a user. Caller commits.

    Raises:
        ValidationError: Blank case id, or negative points/time.
        NotFoundError: No progress record.
    """
    case_id = _validate(case_id, points, time_spent)

    progress = await require_progress(db, user_id, for_update=True)
    now = await storage_now(db)

    completed_before = progress.completed_case_ids
    is_repeat = case_id in completed_before
    first_ever = not completed_before

    evidence_added = 0
    if not is_repeat:
        progress.completed_cases.append(CompletedCase(case_id=case_id, completed_at=now))
        progress.total_cases_completed += 1
        progress.completion_streak += 1
        progress.best_completion_streak = max(progress.best_completion_streak, progress.completion_streak)

        for template in evidence_for_case(case_id):
            progress.evidence.append(EvidenceRecord(
                case_id=case_id,
                title=template.title,
                description=template.description,
                evidence_type=template.evidence_type,
                content=template.content,
                importance=template.importance,
                discovered_at=now,
            ))
            evidence_added += 1

    progress.total_time_spent += time_spent
    if progress.total_cases_completed > 0:
        progress.average_case_time = progress.total_time_spent / progress.total_cases_completed
    else:
        progress.average_case_time = float(time_spent)

    points_awarded = points if first_ever else 0
    outcome = None
    if points_awarded > 0:
        outcome = await grant(
            db,
            progress,
            points=points_awarded,
            hints=0,
            source="case_completion",
            source_id=case_id,
            description=f"Completed {case_id}",
            idempotency_key=f"case:{user_id}:{case_id}",
            now=now,
        )
        if not outcome.granted:
            points_awarded = 0
    progress.level = compute_level(progress.total_points)
    progress.updated_at = now
    await db.flush()

    logger.info(
        "case_completed",
        user_id=user_id,
        case_id=case_id,
        points_awarded=points_awarded,
        is_repeat=is_repeat,
        evidence_added=evidence_added,
    )
    return CaseOutcome(
        points_awarded=points_awarded,
        is_repeat=is_repeat,
        evidence_added=evidence_added,
        grant=outcome,
    )
