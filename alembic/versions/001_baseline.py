"""Baseline: profiles, settings, notifications and Ascend tables.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            username VARCHAR(20) UNIQUE,
            full_name VARCHAR(120),
            bio TEXT,
            avatar_url TEXT,
            xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
            level INTEGER NOT NULL DEFAULT 1,
            roles VARCHAR(32)[] NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_profiles_username_lower
        ON profiles(lower(username))
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS privacy_settings (
            user_id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            profile_visibility VARCHAR(16) NOT NULL DEFAULT 'public',
            messaging_permissions VARCHAR(16) NOT NULL DEFAULT 'everyone',
            activity_visibility VARCHAR(16) NOT NULL DEFAULT 'public',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notification_preferences (
            user_id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            new_follower BOOLEAN NOT NULL DEFAULT true,
            new_message BOOLEAN NOT NULL DEFAULT true,
            mentorship_booking BOOLEAN NOT NULL DEFAULT true,
            mentorship_cancellation BOOLEAN NOT NULL DEFAULT true,
            mentorship_reminder BOOLEAN NOT NULL DEFAULT true,
            pitch_vote BOOLEAN NOT NULL DEFAULT true,
            pitch_comment BOOLEAN NOT NULL DEFAULT true,
            pitch_feedback BOOLEAN NOT NULL DEFAULT true,
            level_up BOOLEAN NOT NULL DEFAULT true,
            badge_unlock BOOLEAN NOT NULL DEFAULT true,
            leaderboard_shift BOOLEAN NOT NULL DEFAULT true,
            launchpad_comment BOOLEAN NOT NULL DEFAULT true,
            launchpad_reaction BOOLEAN NOT NULL DEFAULT true,
            launchpad_repost BOOLEAN NOT NULL DEFAULT true,
            push_enabled BOOLEAN NOT NULL DEFAULT true,
            email_enabled BOOLEAN NOT NULL DEFAULT true,
            email_digest_frequency VARCHAR(16) NOT NULL DEFAULT 'daily',
            muted_until TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            title VARCHAR(256) NOT NULL,
            content TEXT NOT NULL,
            related_id VARCHAR(64),
            related_type VARCHAR(32),
            action_url VARCHAR(256),
            is_read BOOLEAN NOT NULL DEFAULT false,
            metadata JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_created
        ON notifications(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_unread
        ON notifications(user_id) WHERE is_read = false
    """)

    # --- Ascend ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            description VARCHAR(256) NOT NULL,
            transaction_type VARCHAR(32) NOT NULL,
            reference_type VARCHAR(32),
            reference_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_user_created
        ON xp_transactions(user_id, created_at DESC)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(64) NOT NULL,
            category VARCHAR(32) NOT NULL DEFAULT 'general',
            target_progress INTEGER NOT NULL DEFAULT 1 CHECK (target_progress > 0),
            xp_reward INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS badge_progress (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            badge_id UUID NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            current_progress INTEGER NOT NULL DEFAULT 0,
            target_progress INTEGER NOT NULL,
            earned_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_badge_progress_user_id_badge_id UNIQUE (user_id, badge_id)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            xp_cost INTEGER NOT NULL CHECK (xp_cost > 0),
            icon VARCHAR(64) NOT NULL,
            type VARCHAR(32) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_rewards (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            reward_id UUID NOT NULL REFERENCES rewards(id) ON DELETE CASCADE,
            claimed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expires_at TIMESTAMPTZ,
            is_used BOOLEAN NOT NULL DEFAULT false,
            used_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_user_rewards_user ON user_rewards(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS login_streaks (
            user_id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            last_login_date DATE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            max_streak INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard_history (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            xp INTEGER NOT NULL,
            weekly_rank INTEGER,
            monthly_rank INTEGER,
            weekly_change INTEGER NOT NULL DEFAULT 0,
            monthly_change INTEGER NOT NULL DEFAULT 0,
            snapshot_date DATE NOT NULL,
            CONSTRAINT uq_leaderboard_history_user_id_snapshot_date UNIQUE (user_id, snapshot_date)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_leaderboard_history_date
        ON leaderboard_history(snapshot_date DESC)
    """)


def downgrade() -> None:
    for table in (
        "leaderboard_history",
        "login_streaks",
        "user_rewards",
        "rewards",
        "badge_progress",
        "badges",
        "xp_transactions",
        "notifications",
        "notification_preferences",
        "privacy_settings",
        "profiles",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
