"""Hint purchases: the only operation that debits the hint balance.

Each (case, hint) pair is bought at most once; the ledger idempotency key
doubles as the purchase record, so a retried request is never charged twice.
Points are never touched.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.errors import InsufficientHintsError, ValidationError
from codecase.progress.ledger import grant, has_ledger_entry
from codecase.progress.store import require_progress, storage_now

logger = structlog.get_logger()

HINT_COST = 3


@dataclass(frozen=True)
class HintPurchaseOutcome:
    charged: bool
    cost: int
    hints_remaining: int


def purchase_key(user_id: str, case_id: str, hint_id: str) -> str:
    return f"hint:{user_id}:{case_id}:{hint_id}"


async def spend_hints(
    db: AsyncSession,
    user_id: str,
    case_id: str,
    hint_id: str,
    cost: int = HINT_COST,
) -> HintPurchaseOutcome:
    """Buy one hint for a case. Caller commits.

    A hint that was already bought returns ``charged=False`` without
    checking the balance again.

    Raises:
        ValidationError: Blank ids or a non-positive cost.
        InsufficientHintsError: Balance below ``cost``.
        NotFoundError: No progress record.
    """
    case_id = (case_id or "").strip()
    hint_id = (hint_id or "").strip()
    if not case_id or not hint_id:
        msg = "case_id and hint_id are required"
        raise ValidationError(msg)
    if cost <= 0:
        msg = "cost must be positive"
        raise ValidationError(msg)

    progress = await require_progress(db, user_id, for_update=True)
    key = purchase_key(user_id, case_id, hint_id)
    if await has_ledger_entry(db, key):
        return HintPurchaseOutcome(charged=False, cost=cost, hints_remaining=progress.hints)

    if progress.hints < cost:
        msg = "Not enough hint points! Solve more code to earn hints."
        raise InsufficientHintsError(msg, balance=progress.hints, cost=cost)

    now = await storage_now(db)
    await grant(
        db,
        progress,
        points=0,
        hints=-cost,
        source="hint_purchase",
        source_id=f"{case_id}:{hint_id}",
        description=f"Hint {hint_id} for {case_id}",
        idempotency_key=key,
        now=now,
    )
    await db.flush()

    logger.info("hint_purchased", user_id=user_id, case_id=case_id, hint_id=hint_id, cost=cost)
    return HintPurchaseOutcome(charged=True, cost=cost, hints_remaining=progress.hints)
