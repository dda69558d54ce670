"""ORM models for the progression ledger.

One ``user_progress`` row per user plus the set/list side tables that hang
off it. Column types stay portable so the same metadata runs on PostgreSQL
(production) and SQLite (tests).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from codecase.db.base import Base


# ---------------------------------------------------------------------------
# Progress record
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Per-user progress record - the single source of truth for rewards."""

    __tablename__ = "user_progress"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    hints: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    # --- Referrals ---
    referral_code: Mapped[str] = mapped_column(String(6), unique=True, nullable=False)
    referred_by: Mapped[str | None] = mapped_column(String(6), nullable=True)
    total_referrals: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    successful_referrals: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_rewards: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # --- Daily login streak ---
    login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_claim_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # --- Case statistics ---
    total_cases_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_time_spent: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    average_case_time: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default="0")
    completion_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    best_completion_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    completed_cases: Mapped[list[CompletedCase]] = relationship(
        "CompletedCase", lazy="selectin", cascade="all, delete-orphan", order_by="CompletedCase.id"
    )
    evidence: Mapped[list[EvidenceRecord]] = relationship(
        "EvidenceRecord", lazy="selectin", cascade="all, delete-orphan", order_by="EvidenceRecord.id"
    )
    achievements: Mapped[list[UserAchievement]] = relationship(
        "UserAchievement", lazy="selectin", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("hints >= 0", name="user_progress_hints_non_negative"),
        CheckConstraint("login_streak BETWEEN 0 AND 30", name="user_progress_login_streak_range"),
    )

    # Every UPDATE carries "WHERE version = <read version>"; a concurrent
    # writer turns our flush into StaleDataError instead of a lost update.
    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012

    @validates("referral_code")
    def _referral_code_immutable(self, _key: str, value: str) -> str:
        if self.referral_code is not None and value != self.referral_code:
            msg = "referral_code is immutable once assigned"
            raise ValueError(msg)
        return value

    @validates("referred_by")
    def _referred_by_write_once(self, _key: str, value: str | None) -> str | None:
        if self.referred_by and value != self.referred_by:
            msg = "referred_by can only be set once"
            raise ValueError(msg)
        return value

    @property
    def completed_case_ids(self) -> frozenset[str]:
        return frozenset(c.case_id for c in self.completed_cases)


# ---------------------------------------------------------------------------
# Side tables
# ---------------------------------------------------------------------------


class CompletedCase(Base):
    """Cases a user has completed - UNIQUE(user_id, case_id) keeps it a set."""

    __tablename__ = "completed_cases"
    __table_args__ = (
        UniqueConstraint("user_id", "case_id", name="completed_cases_user_id_case_id_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    case_id: Mapped[str] = mapped_column(String(128), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class EvidenceRecord(Base):
    """Append-only evidence collected by completing cases."""

    __tablename__ = "evidence_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    case_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    evidence_type: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    importance: Mapped[str] = mapped_column(String(16), nullable=False)
    discovered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class UserAchievement(Base):
    """Manually unlocked (non-derivable) achievements."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    unlocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ReferralHistory(Base):
    """One row per credited referral - UNIQUE(referee_id) guards against double-crediting."""

    __tablename__ = "referral_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    referee_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    referee_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    hints_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PointsLedger(Base):
    """Immutable points/hints grant log with idempotency key."""

    __tablename__ = "points_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("user_progress.id", ondelete="CASCADE"), nullable=False, index=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hints: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
