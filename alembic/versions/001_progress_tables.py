"""Progress tables.

Creates user_progress and its side tables: completed_cases,
evidence_records, user_achievements, referral_history and points_ledger.

Revision ID: 001_progress_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progress_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Progress record ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            id VARCHAR(128) PRIMARY KEY,
            email VARCHAR(320),
            display_name VARCHAR(64),
            total_points INTEGER NOT NULL DEFAULT 0,
            hints INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            referral_code VARCHAR(6) UNIQUE NOT NULL,
            referred_by VARCHAR(6),
            total_referrals INTEGER NOT NULL DEFAULT 0,
            successful_referrals INTEGER NOT NULL DEFAULT 0,
            total_rewards INTEGER NOT NULL DEFAULT 0,
            login_streak INTEGER NOT NULL DEFAULT 0,
            last_claim_date TIMESTAMPTZ,
            total_cases_completed INTEGER NOT NULL DEFAULT 0,
            total_time_spent BIGINT NOT NULL DEFAULT 0,
            average_case_time DOUBLE PRECISION NOT NULL DEFAULT 0,
            completion_streak INTEGER NOT NULL DEFAULT 0,
            best_completion_streak INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ,
            version INTEGER NOT NULL,
            CONSTRAINT user_progress_hints_non_negative CHECK (hints >= 0),
            CONSTRAINT user_progress_login_streak_range CHECK (login_streak BETWEEN 0 AND 30)
        )
    """)

    # --- Completed cases (a set per user) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS completed_cases (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES user_progress(id) ON DELETE CASCADE,
            case_id VARCHAR(128) NOT NULL,
            completed_at TIMESTAMPTZ,
            CONSTRAINT completed_cases_user_id_case_id_key UNIQUE (user_id, case_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_completed_cases_user_id ON completed_cases(user_id)")

    # --- Evidence (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS evidence_records (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES user_progress(id) ON DELETE CASCADE,
            case_id VARCHAR(128) NOT NULL,
            title VARCHAR(256) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            evidence_type VARCHAR(16) NOT NULL,
            content TEXT NOT NULL,
            importance VARCHAR(16) NOT NULL,
            discovered_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_evidence_records_user_id ON evidence_records(user_id)")

    # --- Stored achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES user_progress(id) ON DELETE CASCADE,
            achievement_id VARCHAR(64) NOT NULL,
            source VARCHAR(32) NOT NULL,
            unlocked_at TIMESTAMPTZ,
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id ON user_achievements(user_id)")

    # --- Referral history (one credit per referee) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS referral_history (
            id SERIAL PRIMARY KEY,
            referrer_id VARCHAR(128) NOT NULL REFERENCES user_progress(id) ON DELETE CASCADE,
            referee_id VARCHAR(128) UNIQUE NOT NULL,
            referee_email VARCHAR(320),
            code VARCHAR(6) NOT NULL,
            points_awarded INTEGER NOT NULL,
            hints_awarded INTEGER NOT NULL,
            created_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_referral_history_referrer_id ON referral_history(referrer_id)")

    # --- Points ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS points_ledger (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(128) NOT NULL REFERENCES user_progress(id) ON DELETE CASCADE,
            points INTEGER NOT NULL DEFAULT 0,
            hints INTEGER NOT NULL DEFAULT 0,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(128),
            description VARCHAR(256),
            idempotency_key VARCHAR(256) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_points_ledger_user_id ON points_ledger(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS points_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS referral_history CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS evidence_records CASCADE")
    op.execute("DROP TABLE IF EXISTS completed_cases CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
