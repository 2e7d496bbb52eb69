"""Tests for Mentor Space: slots, booking, status changes and reviews."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import OTHER_USER_ID, USER_ID, make_db, scalar_result
from idolyst.db.models import Mentor, MentorAvailability, MentorDateException, MentorshipSession, SessionReview
from idolyst.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from idolyst.mentorship.service import (
    apply_as_mentor,
    available_time_slots,
    book_session,
    build_time_slots,
    session_price,
    submit_review,
    sunday_weekday,
    update_session_status,
    validate_expertise,
)

MENTOR_ID = OTHER_USER_ID
SESSION_ID = "44444444-4444-4444-4444-444444444444"
DAY = date(2026, 11, 2)  # a Monday


def scalars_result(values: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def rows_result(rows: list) -> MagicMock:
    result = MagicMock()
    result.all.return_value = rows
    result.one.return_value = rows[0] if rows else None
    return result


def _mentor(status: str = "approved", rate: str = "60.00") -> Mentor:
    return Mentor(
        id=MENTOR_ID,
        bio="Ex-founder",
        expertise=["Business", "Finance"],
        hourly_rate=Decimal(rate),
        years_experience=8,
        is_featured=False,
        avg_rating=0.0,
        total_sessions=0,
        total_reviews=0,
        status=status,
    )


def _session(status: str = "scheduled") -> MentorshipSession:
    return MentorshipSession(
        id=SESSION_ID,
        mentor_id=MENTOR_ID,
        mentee_id=USER_ID,
        title="Pitch review",
        session_date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        status=status,
        price=Decimal("60.00"),
        payment_status=True,
    )


class TestTimeSlots:
    def test_window_cut_into_half_hours(self) -> None:
        slots = build_time_slots(DAY, [(time(9, 0), time(10, 30))], [])
        assert [(s["start_time"], s["end_time"]) for s in slots] == [
            ("09:00", "09:30"),
            ("09:30", "10:00"),
            ("10:00", "10:30"),
        ]
        assert slots[0]["date"] == "2026-11-02"

    def test_short_remainder_dropped(self) -> None:
        slots = build_time_slots(DAY, [(time(9, 0), time(9, 45))], [])
        assert [s["start_time"] for s in slots] == ["09:00"]

    def test_booked_range_excluded(self) -> None:
        slots = build_time_slots(DAY, [(time(9, 0), time(11, 0))], [(time(9, 30), time(10, 15))])
        assert [s["start_time"] for s in slots] == ["09:00", "10:30"]

    def test_windows_merged_in_time_order(self) -> None:
        slots = build_time_slots(DAY, [(time(14, 0), time(14, 30)), (time(8, 0), time(8, 30))], [])
        assert [s["start_time"] for s in slots] == ["08:00", "14:00"]

    def test_sunday_is_zero(self) -> None:
        assert sunday_weekday(date(2026, 11, 1)) == 0
        assert sunday_weekday(DAY) == 1
        assert sunday_weekday(date(2026, 11, 7)) == 6


class TestPricingAndExpertise:
    def test_price_prorated(self) -> None:
        assert session_price(Decimal("60"), time(10, 0), time(10, 30)) == Decimal("30.00")
        assert session_price(Decimal("45.50"), time(9, 0), time(10, 30)) == Decimal("68.25")

    def test_unknown_expertise_rejected(self) -> None:
        with pytest.raises(ValidationFailedError, match="Cooking"):
            validate_expertise(["Business", "Cooking"])

    def test_empty_expertise_rejected(self) -> None:
        with pytest.raises(ValidationFailedError):
            validate_expertise([])

    def test_duplicates_collapsed(self) -> None:
        assert validate_expertise(["Design", "Data", "Design"]) == ["Design", "Data"]


@pytest.mark.asyncio
class TestAvailableSlots:
    async def test_blocked_date_has_no_slots(self) -> None:
        db = make_db()
        blocked = MentorDateException(mentor_id=MENTOR_ID, exception_date=DAY, is_available=False)
        db.execute.return_value = scalar_result(blocked)
        assert await available_time_slots(db, MENTOR_ID, DAY) == []
        db.execute.assert_awaited_once()

    async def test_booked_session_removes_slot(self) -> None:
        db = make_db()
        window = MentorAvailability(mentor_id=MENTOR_ID, day_of_week=1, start_time=time(10, 0), end_time=time(11, 0))
        db.execute.side_effect = [
            scalar_result(None),
            scalars_result([window]),
            rows_result([(time(10, 0), time(10, 30))]),
        ]
        slots = await available_time_slots(db, MENTOR_ID, DAY)
        assert [s["start_time"] for s in slots] == ["10:30"]


@pytest.mark.asyncio
class TestApply:
    async def test_first_application_pending(self) -> None:
        db = make_db()
        mentor = await apply_as_mentor(db, USER_ID, " Operator ", ["Sales"], 80, 5)
        assert mentor.status == "pending"
        assert mentor.bio == "Operator"
        assert mentor.hourly_rate == Decimal("80")
        db.add.assert_called_once_with(mentor)

    async def test_pending_applicant_cannot_reapply(self) -> None:
        db = make_db()
        db.get.return_value = _mentor(status="pending")
        with pytest.raises(ConflictError):
            await apply_as_mentor(db, MENTOR_ID, "bio", ["Sales"], 80, 5)

    async def test_rejected_applicant_reapplies(self) -> None:
        db = make_db()
        existing = _mentor(status="rejected")
        db.get.return_value = existing
        mentor = await apply_as_mentor(db, MENTOR_ID, "New bio", ["Data"], 90, 9)
        assert mentor is existing
        assert mentor.status == "pending"
        assert mentor.expertise == ["Data"]
        db.add.assert_not_called()

    async def test_non_positive_rate(self) -> None:
        with pytest.raises(ValidationFailedError):
            await apply_as_mentor(make_db(), USER_ID, "bio", ["Sales"], 0, 5)


@pytest.mark.asyncio
class TestBooking:
    async def test_books_and_notifies_mentor(self) -> None:
        db = make_db()
        db.get.return_value = _mentor()
        db.execute.return_value = scalar_result(0)
        publisher = AsyncMock()
        with patch("idolyst.mentorship.service.create_notification", AsyncMock()) as notify:
            session = await book_session(
                db, publisher, USER_ID, MENTOR_ID, " Pitch review ", DAY, time(10, 0), time(10, 30), today=DAY
            )
        assert session.status == "scheduled"
        assert session.title == "Pitch review"
        assert session.price == Decimal("30.00")
        assert notify.await_args.args[1:3] == (MENTOR_ID, "mentorship_booking")
        assert notify.await_args.kwargs["redis"] is publisher

    async def test_overlap_rejected(self) -> None:
        db = make_db()
        db.get.return_value = _mentor()
        db.execute.return_value = scalar_result(1)
        with pytest.raises(ConflictError, match="no longer available"):
            await book_session(db, None, USER_ID, MENTOR_ID, "Chat", DAY, time(10, 0), time(11, 0), today=DAY)
        db.add.assert_not_called()

    async def test_unapproved_mentor_not_found(self) -> None:
        db = make_db()
        db.get.return_value = _mentor(status="pending")
        with pytest.raises(NotFoundError):
            await book_session(db, None, USER_ID, MENTOR_ID, "Chat", DAY, time(10, 0), time(11, 0), today=DAY)

    async def test_past_date_rejected(self) -> None:
        with pytest.raises(ValidationFailedError, match="past"):
            await book_session(
                make_db(), None, USER_ID, MENTOR_ID, "Chat", DAY, time(10, 0), time(11, 0), today=date(2026, 11, 3)
            )

    async def test_reversed_times_rejected(self) -> None:
        with pytest.raises(ValidationFailedError, match="End time"):
            await book_session(make_db(), None, USER_ID, MENTOR_ID, "Chat", DAY, time(11, 0), time(10, 0), today=DAY)

    async def test_self_booking_rejected(self) -> None:
        with pytest.raises(ValidationFailedError, match="yourself"):
            await book_session(make_db(), None, MENTOR_ID, MENTOR_ID, "Chat", DAY, time(10, 0), time(11, 0), today=DAY)


@pytest.mark.asyncio
class TestSessionStatus:
    async def test_outsider_forbidden(self) -> None:
        db = make_db()
        db.get.return_value = _session()
        with pytest.raises(ForbiddenError):
            await update_session_status(db, None, SESSION_ID, "someone-else", "cancelled")

    async def test_mentee_cannot_set_meeting_link(self) -> None:
        db = make_db()
        db.get.return_value = _session()
        with pytest.raises(ForbiddenError, match="meeting link"):
            await update_session_status(db, None, SESSION_ID, USER_ID, "scheduled", "https://meet.example/x")

    async def test_mentor_sets_meeting_link(self) -> None:
        db = make_db()
        db.get.return_value = _session()
        session = await update_session_status(db, None, SESSION_ID, MENTOR_ID, "rescheduled", "https://meet.example/x")
        assert session.status == "rescheduled"
        assert session.meeting_link == "https://meet.example/x"

    async def test_completion_counts_on_mentor(self) -> None:
        db = make_db()
        mentor = _mentor()
        db.get.side_effect = [_session(), mentor]
        await update_session_status(db, None, SESSION_ID, MENTOR_ID, "completed")
        assert mentor.total_sessions == 1

    async def test_cancel_notifies_other_party(self) -> None:
        db = make_db()
        db.get.return_value = _session()
        with patch("idolyst.mentorship.service.create_notification", AsyncMock()) as notify:
            await update_session_status(db, None, SESSION_ID, USER_ID, "cancelled")
        assert notify.await_args.args[1:3] == (MENTOR_ID, "mentorship_cancellation")

    async def test_unknown_session(self) -> None:
        with pytest.raises(NotFoundError):
            await update_session_status(make_db(), None, SESSION_ID, USER_ID, "cancelled")


@pytest.mark.asyncio
class TestReviews:
    async def test_only_mentee_reviews(self) -> None:
        db = make_db()
        db.get.return_value = _session(status="completed")
        with pytest.raises(ForbiddenError):
            await submit_review(db, SESSION_ID, MENTOR_ID, 5)

    async def test_only_completed_sessions(self) -> None:
        db = make_db()
        db.get.return_value = _session(status="scheduled")
        with pytest.raises(ValidationFailedError, match="completed"):
            await submit_review(db, SESSION_ID, USER_ID, 5)

    async def test_rating_range(self) -> None:
        with pytest.raises(ValidationFailedError):
            await submit_review(make_db(), SESSION_ID, USER_ID, 6)

    async def test_new_review_refreshes_mentor_rating(self) -> None:
        db = make_db()
        mentor = _mentor()
        db.get.side_effect = [_session(status="completed"), mentor]
        db.execute.side_effect = [scalar_result(None), rows_result([(Decimal("4.5"), 2)])]
        review = await submit_review(db, SESSION_ID, USER_ID, 5, "  Great  ")
        assert review.comment == "Great"
        db.add.assert_called_once_with(review)
        assert mentor.avg_rating == 4.5
        assert mentor.total_reviews == 2

    async def test_second_review_updates_existing(self) -> None:
        db = make_db()
        existing = SessionReview(session_id=SESSION_ID, reviewer_id=USER_ID, rating=2, comment="meh", is_public=True)
        db.get.side_effect = [_session(status="completed"), _mentor()]
        db.execute.side_effect = [scalar_result(existing), rows_result([(Decimal("4"), 1)])]
        review = await submit_review(db, SESSION_ID, USER_ID, 4, None, is_public=False)
        assert review is existing
        assert review.rating == 4
        assert review.comment is None
        assert not review.is_public
        db.add.assert_not_called()
