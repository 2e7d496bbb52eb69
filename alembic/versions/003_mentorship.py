"""Mentorship marketplace.

Creates mentors, mentor_availability, mentor_date_exceptions,
mentorship_sessions and session_reviews.

Revision ID: 003_mentorship
Revises: 002_messaging_launchpad
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "003_mentorship"
down_revision: str | None = "002_messaging_launchpad"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS mentors (
            id UUID PRIMARY KEY REFERENCES profiles(id) ON DELETE CASCADE,
            bio TEXT NOT NULL,
            expertise VARCHAR(32)[] NOT NULL DEFAULT '{}',
            hourly_rate NUMERIC(10, 2) NOT NULL,
            years_experience INTEGER NOT NULL DEFAULT 0,
            is_featured BOOLEAN NOT NULL DEFAULT false,
            avg_rating DOUBLE PRECISION NOT NULL DEFAULT 0,
            total_sessions INTEGER NOT NULL DEFAULT 0,
            total_reviews INTEGER NOT NULL DEFAULT 0,
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'approved', 'rejected')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_mentors_listing
        ON mentors(is_featured DESC, avg_rating DESC) WHERE status = 'approved'
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS mentor_availability (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            mentor_id UUID NOT NULL REFERENCES mentors(id) ON DELETE CASCADE,
            day_of_week SMALLINT NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
            start_time TIME NOT NULL,
            end_time TIME NOT NULL,
            CHECK (end_time > start_time)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_mentor_availability_mentor
        ON mentor_availability(mentor_id, day_of_week)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS mentor_date_exceptions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            mentor_id UUID NOT NULL REFERENCES mentors(id) ON DELETE CASCADE,
            exception_date DATE NOT NULL,
            is_available BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT uq_mentor_date_exceptions_mentor_id_exception_date UNIQUE (mentor_id, exception_date)
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS mentorship_sessions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            mentor_id UUID NOT NULL REFERENCES mentors(id) ON DELETE CASCADE,
            mentee_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            session_date DATE NOT NULL,
            start_time TIME NOT NULL,
            end_time TIME NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'scheduled'
                CHECK (status IN ('scheduled', 'completed', 'cancelled', 'rescheduled')),
            meeting_link TEXT,
            price NUMERIC(10, 2) NOT NULL,
            payment_status BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_mentorship_sessions_mentor_date
        ON mentorship_sessions(mentor_id, session_date)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_mentorship_sessions_mentee
        ON mentorship_sessions(mentee_id)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS session_reviews (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            session_id UUID NOT NULL REFERENCES mentorship_sessions(id) ON DELETE CASCADE,
            reviewer_id UUID NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
            rating SMALLINT NOT NULL CHECK (rating BETWEEN 1 AND 5),
            comment TEXT,
            is_public BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_session_reviews_session_id_reviewer_id UNIQUE (session_id, reviewer_id)
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS session_reviews CASCADE")
    op.execute("DROP TABLE IF EXISTS mentorship_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS mentor_date_exceptions CASCADE")
    op.execute("DROP TABLE IF EXISTS mentor_availability CASCADE")
    op.execute("DROP TABLE IF EXISTS mentors CASCADE")
