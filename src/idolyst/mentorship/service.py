"""Mentor Space: mentor listings, availability, session booking and reviews.

Booking and cancellation notify the other party through
``create_notification``; routers pass a ``DeferredPublisher`` so the push
goes out after the transaction commits.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.db.models import (
    Mentor,
    MentorAvailability,
    MentorDateException,
    MentorshipSession,
    Profile,
    SessionReview,
)
from idolyst.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from idolyst.notifications.service import create_notification

logger = logging.getLogger(__name__)

EXPERTISE_CATEGORIES: tuple[str, ...] = (
    "Business",
    "Marketing",
    "Technology",
    "Design",
    "Finance",
    "Product",
    "Leadership",
    "Sales",
    "Operations",
    "Data",
)

SESSION_STATUSES = ("scheduled", "completed", "cancelled", "rescheduled")
# Sessions in these states hold their time slot.
ACTIVE_SESSION_STATUSES = ("scheduled", "rescheduled")

SLOT_MINUTES = 30

MentorSort = Literal["rating", "price_low", "price_high", "sessions"]

_SORT_ORDER = {
    "rating": (Mentor.avg_rating.desc(),),
    "price_low": (Mentor.hourly_rate.asc(),),
    "price_high": (Mentor.hourly_rate.desc(),),
    "sessions": (Mentor.total_sessions.desc(),),
}
_DEFAULT_ORDER = (Mentor.is_featured.desc(), Mentor.avg_rating.desc())


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def sunday_weekday(day: date) -> int:
    """Day of week with Sunday = 0, as stored in ``mentor_availability``."""
    return (day.weekday() + 1) % 7


def times_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    return start_a < end_b and end_a > start_b


def build_time_slots(
    day: date,
    windows: Iterable[tuple[time, time]],
    booked: Iterable[tuple[time, time]],
    slot_minutes: int = SLOT_MINUTES,
) -> list[dict[str, Any]]:
    """Cut availability windows into fixed slots, dropping any that touch a booking.

    A trailing remainder shorter than one slot is not offered.
    """
    booked = list(booked)
    step = timedelta(minutes=slot_minutes)
    slots: list[dict[str, Any]] = []
    for window_start, window_end in windows:
        cursor = datetime.combine(day, window_start)
        end = datetime.combine(day, window_end)
        while cursor + step <= end:
            slot_start, slot_end = cursor.time(), (cursor + step).time()
            if not any(times_overlap(slot_start, slot_end, b_start, b_end) for b_start, b_end in booked):
                slots.append(
                    {
                        "date": day.isoformat(),
                        "start_time": slot_start.strftime("%H:%M"),
                        "end_time": slot_end.strftime("%H:%M"),
                        "is_available": True,
                    }
                )
            cursor += step
    slots.sort(key=lambda s: s["start_time"])
    return slots


def session_price(hourly_rate: Decimal | float, start: time, end: time) -> Decimal:
    """Hourly rate prorated to the session length, rounded to cents."""
    minutes = (datetime.combine(date.min, end) - datetime.combine(date.min, start)).total_seconds() / 60
    price = Decimal(str(hourly_rate)) * Decimal(int(minutes)) / Decimal(60)
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def validate_expertise(expertise: Sequence[str]) -> list[str]:
    if not expertise:
        msg = "Select at least one area of expertise"
        raise ValidationFailedError(msg, field="expertise")
    unknown = [e for e in expertise if e not in EXPERTISE_CATEGORIES]
    if unknown:
        msg = f"Unknown expertise: {', '.join(unknown)}"
        raise ValidationFailedError(msg, field="expertise")
    return list(dict.fromkeys(expertise))


# ---------------------------------------------------------------------------
# Mentors
# ---------------------------------------------------------------------------


async def list_mentors(
    db: AsyncSession,
    *,
    expertise: Sequence[str] | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    min_rating: float | None = None,
    search: str | None = None,
    sort_by: MentorSort | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Mentor]:
    """Approved mentors, featured and best rated first unless ``sort_by`` says otherwise."""
    stmt = select(Mentor).join(Profile, Profile.id == Mentor.id).where(Mentor.status == "approved")
    if expertise:
        stmt = stmt.where(Mentor.expertise.contains(list(expertise)))
    if min_price is not None:
        stmt = stmt.where(Mentor.hourly_rate >= min_price)
    if max_price is not None:
        stmt = stmt.where(Mentor.hourly_rate <= max_price)
    if min_rating is not None:
        stmt = stmt.where(Mentor.avg_rating >= min_rating)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(Mentor.bio.ilike(pattern), Profile.full_name.ilike(pattern), Profile.username.ilike(pattern))
        )
    order = _SORT_ORDER.get(sort_by or "", _DEFAULT_ORDER)
    result = await db.execute(stmt.order_by(*order).limit(limit).offset(offset))
    return list(result.scalars().unique().all())


async def get_mentor(db: AsyncSession, mentor_id: str, viewer_id: str | None = None) -> Mentor:
    """An approved mentor. Applicants can also see their own pending or rejected listing."""
    mentor = await db.get(Mentor, mentor_id)
    if mentor is None or (mentor.status != "approved" and mentor.id != viewer_id):
        msg = f"Mentor {mentor_id} not found"
        raise NotFoundError(msg)
    return mentor


async def apply_as_mentor(
    db: AsyncSession,
    user_id: str,
    bio: str,
    expertise: Sequence[str],
    hourly_rate: Decimal | float,
    years_experience: int,
) -> Mentor:
    """Create a pending mentor listing; a rejected applicant may apply again.

    Raises:
        ConflictError: if the user already has a pending or approved listing.
        ValidationFailedError: for an empty bio, unknown expertise or a non-positive rate.
    """
    bio = bio.strip()
    if not bio:
        msg = "Bio is required"
        raise ValidationFailedError(msg, field="bio")
    if Decimal(str(hourly_rate)) <= 0:
        msg = "Hourly rate must be positive"
        raise ValidationFailedError(msg, field="hourly_rate")
    if years_experience < 0:
        msg = "Years of experience cannot be negative"
        raise ValidationFailedError(msg, field="years_experience")
    expertise = validate_expertise(expertise)

    now = datetime.now(timezone.utc)
    mentor = await db.get(Mentor, user_id)
    if mentor is not None and mentor.status != "rejected":
        msg = "You have already applied as a mentor"
        raise ConflictError(msg)

    if mentor is None:
        mentor = Mentor(
            id=user_id,
            avg_rating=0.0,
            total_sessions=0,
            total_reviews=0,
            is_featured=False,
            created_at=now,
        )
        db.add(mentor)
    mentor.bio = bio
    mentor.expertise = expertise
    mentor.hourly_rate = Decimal(str(hourly_rate))
    mentor.years_experience = years_experience
    mentor.status = "pending"
    mentor.updated_at = now
    await db.flush()
    logger.info("Mentor application from %s", user_id)
    return mentor


async def replace_availability(
    db: AsyncSession,
    mentor_id: str,
    windows: Sequence[tuple[int, time, time]],
) -> list[MentorAvailability]:
    """Replace the mentor's weekly windows with ``(day_of_week, start, end)`` triples."""
    if await db.get(Mentor, mentor_id) is None:
        msg = "Apply as a mentor before setting availability"
        raise NotFoundError(msg)
    for day_of_week, start, end in windows:
        if not 0 <= day_of_week <= 6:
            msg = f"Invalid day of week: {day_of_week}"
            raise ValidationFailedError(msg, field="day_of_week")
        if end <= start:
            msg = "End time must be after start time"
            raise ValidationFailedError(msg, field="end_time")

    await db.execute(delete(MentorAvailability).where(MentorAvailability.mentor_id == mentor_id))
    rows = [
        MentorAvailability(mentor_id=mentor_id, day_of_week=day_of_week, start_time=start, end_time=end)
        for day_of_week, start, end in windows
    ]
    db.add_all(rows)
    await db.flush()
    return rows


async def set_date_exception(
    db: AsyncSession,
    mentor_id: str,
    exception_date: date,
    is_available: bool = False,
) -> MentorDateException:
    if await db.get(Mentor, mentor_id) is None:
        msg = "Apply as a mentor before setting availability"
        raise NotFoundError(msg)
    result = await db.execute(
        select(MentorDateException).where(
            MentorDateException.mentor_id == mentor_id,
            MentorDateException.exception_date == exception_date,
        )
    )
    exception = result.scalar_one_or_none()
    if exception is None:
        exception = MentorDateException(mentor_id=mentor_id, exception_date=exception_date)
        db.add(exception)
    exception.is_available = is_available
    await db.flush()
    return exception


async def available_time_slots(db: AsyncSession, mentor_id: str, day: date) -> list[dict[str, Any]]:
    """Open 30-minute slots for ``day``; empty when the date is blocked off."""
    result = await db.execute(
        select(MentorDateException).where(
            MentorDateException.mentor_id == mentor_id,
            MentorDateException.exception_date == day,
        )
    )
    exception = result.scalar_one_or_none()
    if exception is not None and not exception.is_available:
        return []

    result = await db.execute(
        select(MentorAvailability).where(
            MentorAvailability.mentor_id == mentor_id,
            MentorAvailability.day_of_week == sunday_weekday(day),
        )
    )
    windows = [(w.start_time, w.end_time) for w in result.scalars().all()]
    if not windows:
        return []

    result = await db.execute(
        select(MentorshipSession.start_time, MentorshipSession.end_time).where(
            MentorshipSession.mentor_id == mentor_id,
            MentorshipSession.session_date == day,
            MentorshipSession.status.in_(ACTIVE_SESSION_STATUSES),
        )
    )
    booked = [(start, end) for start, end in result.all()]
    return build_time_slots(day, windows, booked)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def book_session(
    db: AsyncSession,
    redis: object | None,
    mentee_id: str,
    mentor_id: str,
    title: str,
    session_date: date,
    start_time: time,
    end_time: time,
    description: str | None = None,
    today: date | None = None,
) -> MentorshipSession:
    """Book a slot with an approved mentor and notify them.

    Raises:
        NotFoundError: if the mentor is unknown or not approved.
        ValidationFailedError: for a bad time range, a past date or self-booking.
        ConflictError: if an active session already overlaps the range.
    """
    title = title.strip()
    if not title:
        msg = "Session title is required"
        raise ValidationFailedError(msg, field="title")
    if end_time <= start_time:
        msg = "End time must be after start time"
        raise ValidationFailedError(msg, field="end_time")
    if session_date < (today or date.today()):
        msg = "Sessions cannot be booked in the past"
        raise ValidationFailedError(msg, field="session_date")
    if mentee_id == mentor_id:
        msg = "You cannot book a session with yourself"
        raise ValidationFailedError(msg, field="mentor_id")

    mentor = await get_mentor(db, mentor_id)

    result = await db.execute(
        select(func.count())
        .select_from(MentorshipSession)
        .where(
            MentorshipSession.mentor_id == mentor_id,
            MentorshipSession.session_date == session_date,
            MentorshipSession.status.in_(ACTIVE_SESSION_STATUSES),
            MentorshipSession.start_time < end_time,
            MentorshipSession.end_time > start_time,
        )
    )
    if result.scalar_one() > 0:
        msg = "This time slot is no longer available"
        raise ConflictError(msg)

    now = datetime.now(timezone.utc)
    session = MentorshipSession(
        mentor_id=mentor_id,
        mentee_id=mentee_id,
        title=title,
        description=(description or "").strip() or None,
        session_date=session_date,
        start_time=start_time,
        end_time=end_time,
        status="scheduled",
        price=session_price(mentor.hourly_rate, start_time, end_time),
        payment_status=True,
        created_at=now,
        updated_at=now,
    )
    db.add(session)
    await db.flush()

    await create_notification(
        db,
        mentor_id,
        "mentorship_booking",
        title="New Session Booked",
        content=f"{title} on {session_date.isoformat()} at {start_time.strftime('%H:%M')}",
        related_id=session.id,
        related_type="mentorship_session",
        action_url="/mentor-space/sessions",
        redis=redis,
    )
    logger.info("Session %s booked with mentor %s by %s", session.id, mentor_id, mentee_id)
    return session


async def list_user_sessions(
    db: AsyncSession,
    user_id: str,
    role: Literal["mentor", "mentee"] | None = None,
) -> list[MentorshipSession]:
    """Sessions the user takes part in, latest first."""
    if role == "mentor":
        condition = MentorshipSession.mentor_id == user_id
    elif role == "mentee":
        condition = MentorshipSession.mentee_id == user_id
    else:
        condition = or_(MentorshipSession.mentor_id == user_id, MentorshipSession.mentee_id == user_id)
    result = await db.execute(
        select(MentorshipSession)
        .where(condition)
        .order_by(MentorshipSession.session_date.desc(), MentorshipSession.start_time.desc())
    )
    return list(result.scalars().all())


async def _get_session_for(db: AsyncSession, session_id: str, user_id: str) -> MentorshipSession:
    session = await db.get(MentorshipSession, session_id)
    if session is None:
        msg = f"Session {session_id} not found"
        raise NotFoundError(msg)
    if user_id not in (session.mentor_id, session.mentee_id):
        msg = "Only the mentor or mentee can change this session"
        raise ForbiddenError(msg)
    return session


async def update_session_status(
    db: AsyncSession,
    redis: object | None,
    session_id: str,
    user_id: str,
    status: str,
    meeting_link: str | None = None,
) -> MentorshipSession:
    """Move a session to ``status``; only the mentor may set the meeting link.

    Completing a session counts it on the mentor; cancelling notifies the
    other participant.
    """
    if status not in SESSION_STATUSES:
        msg = f"Invalid session status: {status}"
        raise ValidationFailedError(msg, field="status")
    session = await _get_session_for(db, session_id, user_id)
    if meeting_link is not None and user_id != session.mentor_id:
        msg = "Only the mentor can set the meeting link"
        raise ForbiddenError(msg)

    previous = session.status
    session.status = status
    if meeting_link is not None:
        session.meeting_link = meeting_link.strip() or None
    session.updated_at = datetime.now(timezone.utc)

    if status == "completed" and previous != "completed":
        mentor = await db.get(Mentor, session.mentor_id)
        if mentor is not None:
            mentor.total_sessions = (mentor.total_sessions or 0) + 1
    await db.flush()

    if status == "cancelled" and previous != "cancelled":
        other = session.mentee_id if user_id == session.mentor_id else session.mentor_id
        await create_notification(
            db,
            other,
            "mentorship_cancellation",
            title="Session Cancelled",
            content=f"{session.title} on {session.session_date.isoformat()} was cancelled.",
            related_id=session.id,
            related_type="mentorship_session",
            action_url="/mentor-space/sessions",
            redis=redis,
        )
    return session


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


async def _refresh_rating(db: AsyncSession, mentor_id: str) -> None:
    result = await db.execute(
        select(func.avg(SessionReview.rating), func.count(SessionReview.id))
        .join(MentorshipSession, MentorshipSession.id == SessionReview.session_id)
        .where(MentorshipSession.mentor_id == mentor_id)
    )
    average, count = result.one()
    mentor = await db.get(Mentor, mentor_id)
    if mentor is None:
        return
    mentor.avg_rating = round(float(average or 0), 2)
    mentor.total_reviews = count or 0


async def submit_review(
    db: AsyncSession,
    session_id: str,
    reviewer_id: str,
    rating: int,
    comment: str | None = None,
    is_public: bool = True,
) -> SessionReview:
    """Create or replace the mentee's review of a completed session.

    The mentor's ``avg_rating`` and ``total_reviews`` are recomputed.
    """
    if not 1 <= rating <= 5:
        msg = "Rating must be between 1 and 5"
        raise ValidationFailedError(msg, field="rating")
    session = await db.get(MentorshipSession, session_id)
    if session is None:
        msg = f"Session {session_id} not found"
        raise NotFoundError(msg)
    if reviewer_id != session.mentee_id:
        msg = "Only the mentee can review this session"
        raise ForbiddenError(msg)
    if session.status != "completed":
        msg = "Only completed sessions can be reviewed"
        raise ValidationFailedError(msg, field="session_id")

    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(SessionReview).where(
            SessionReview.session_id == session_id,
            SessionReview.reviewer_id == reviewer_id,
        )
    )
    review = result.scalar_one_or_none()
    if review is None:
        review = SessionReview(session_id=session_id, reviewer_id=reviewer_id, created_at=now)
        db.add(review)
    review.rating = rating
    review.comment = (comment or "").strip() or None
    review.is_public = is_public
    review.updated_at = now
    await db.flush()

    await _refresh_rating(db, session.mentor_id)
    await db.flush()
    return review


async def list_mentor_reviews(db: AsyncSession, mentor_id: str, limit: int = 20) -> list[SessionReview]:
    """Public reviews of a mentor, newest first."""
    result = await db.execute(
        select(SessionReview)
        .join(MentorshipSession, MentorshipSession.id == SessionReview.session_id)
        .where(MentorshipSession.mentor_id == mentor_id, SessionReview.is_public.is_(True))
        .order_by(SessionReview.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().unique().all())
