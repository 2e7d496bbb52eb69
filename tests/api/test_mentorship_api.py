"""Tests for Mentor Space endpoints."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient

from conftest import OTHER_USER_ID, USER_ID, make_profile
from idolyst.db.models import Mentor, MentorshipSession, SessionReview
from idolyst.errors import ConflictError, ForbiddenError, NotFoundError

MENTOR_ID = OTHER_USER_ID
SESSION_ID = "44444444-4444-4444-4444-444444444444"


def _mentor() -> Mentor:
    mentor = Mentor(
        id=MENTOR_ID,
        bio="Ex-founder",
        expertise=["Business"],
        hourly_rate=Decimal("60.00"),
        years_experience=8,
        is_featured=True,
        avg_rating=4.8,
        total_sessions=12,
        total_reviews=5,
        status="approved",
    )
    mentor.profile = make_profile(MENTOR_ID, username="bob")
    return mentor


def _session(status: str = "scheduled") -> MentorshipSession:
    return MentorshipSession(
        id=SESSION_ID,
        mentor_id=MENTOR_ID,
        mentee_id=USER_ID,
        title="Pitch review",
        description=None,
        session_date=date(2026, 11, 2),
        start_time=time(10, 0),
        end_time=time(10, 30),
        status=status,
        meeting_link=None,
        price=Decimal("30.00"),
        payment_status=True,
    )


BOOKING = {
    "mentor_id": MENTOR_ID,
    "title": "Pitch review",
    "session_date": "2026-11-02",
    "start_time": "10:00",
    "end_time": "10:30",
}


@pytest.mark.asyncio
class TestMentorListing:
    async def test_list_passes_filters(self, client: AsyncClient) -> None:
        with patch("idolyst.mentorship.service.list_mentors", AsyncMock(return_value=[_mentor()])) as list_mentors:
            response = await client.get(
                "/api/v1/mentors", params={"expertise": ["Business", "Data"], "sort_by": "price_low", "min_rating": 4}
            )
        assert response.status_code == 200
        body = response.json()
        assert body[0]["hourly_rate"] == 60.0
        assert body[0]["profile"]["username"] == "bob"
        kwargs = list_mentors.await_args.kwargs
        assert kwargs["expertise"] == ["Business", "Data"]
        assert kwargs["sort_by"] == "price_low"
        assert kwargs["min_rating"] == 4

    async def test_unknown_sort_rejected(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/mentors", params={"sort_by": "cheapest"})
        assert response.status_code == 422

    async def test_detail_not_found(self, client: AsyncClient) -> None:
        with patch("idolyst.mentorship.service.get_mentor", AsyncMock(side_effect=NotFoundError("x"))):
            response = await client.get(f"/api/v1/mentors/{MENTOR_ID}")
        assert response.status_code == 404

    async def test_slots_by_date(self, client: AsyncClient) -> None:
        slot = {"date": "2026-11-02", "start_time": "10:00", "end_time": "10:30", "is_available": True}
        with patch("idolyst.mentorship.service.available_time_slots", AsyncMock(return_value=[slot])) as slots:
            response = await client.get(f"/api/v1/mentors/{MENTOR_ID}/slots", params={"date": "2026-11-02"})
        assert response.json() == [slot]
        assert slots.await_args.args[1:] == (MENTOR_ID, date(2026, 11, 2))


@pytest.mark.asyncio
class TestApplication:
    async def test_apply(self, client: AsyncClient, db: MagicMock) -> None:
        mentor = _mentor()
        mentor.status = "pending"
        with patch("idolyst.mentorship.service.apply_as_mentor", AsyncMock(return_value=mentor)):
            response = await client.post(
                "/api/v1/mentors/apply",
                json={"bio": "Ex-founder", "expertise": ["Business"], "hourly_rate": 60, "years_experience": 8},
            )
        assert response.status_code == 201
        assert response.json()["status"] == "pending"
        db.commit.assert_awaited_once()

    async def test_duplicate_application(self, client: AsyncClient, db: MagicMock) -> None:
        error = ConflictError("You have already applied as a mentor")
        with patch("idolyst.mentorship.service.apply_as_mentor", AsyncMock(side_effect=error)):
            response = await client.post(
                "/api/v1/mentors/apply",
                json={"bio": "x", "expertise": ["Business"], "hourly_rate": 60},
            )
        assert response.status_code == 409
        db.commit.assert_not_awaited()

    async def test_availability_window_order_checked(self, client: AsyncClient) -> None:
        response = await client.put(
            "/api/v1/mentors/me/availability",
            json=[{"day_of_week": 1, "start_time": "11:00", "end_time": "10:00"}],
        )
        assert response.status_code == 422


@pytest.mark.asyncio
class TestBookingEndpoints:
    async def test_book(self, client: AsyncClient, db: MagicMock) -> None:
        with patch("idolyst.mentorship.service.book_session", AsyncMock(return_value=_session())) as book:
            response = await client.post("/api/v1/mentors/sessions", json=BOOKING)
        assert response.status_code == 201
        assert response.json()["price"] == 30.0
        assert book.await_args.args[2:4] == (USER_ID, MENTOR_ID)
        db.commit.assert_awaited_once()

    async def test_taken_slot(self, client: AsyncClient, db: MagicMock) -> None:
        error = ConflictError("This time slot is no longer available")
        with patch("idolyst.mentorship.service.book_session", AsyncMock(side_effect=error)):
            response = await client.post("/api/v1/mentors/sessions", json=BOOKING)
        assert response.status_code == 409
        assert response.json()["detail"] == "This time slot is no longer available"
        db.commit.assert_not_awaited()

    async def test_status_update_forbidden(self, client: AsyncClient) -> None:
        error = ForbiddenError("Only the mentor can set the meeting link")
        with patch("idolyst.mentorship.service.update_session_status", AsyncMock(side_effect=error)):
            response = await client.patch(
                f"/api/v1/mentors/sessions/{SESSION_ID}",
                json={"status": "scheduled", "meeting_link": "https://meet.example/x"},
            )
        assert response.status_code == 403

    async def test_invalid_status(self, client: AsyncClient) -> None:
        response = await client.patch(f"/api/v1/mentors/sessions/{SESSION_ID}", json={"status": "done"})
        assert response.status_code == 422

    async def test_review(self, client: AsyncClient, db: MagicMock) -> None:
        review = SessionReview(
            id="r1",
            session_id=SESSION_ID,
            reviewer_id=USER_ID,
            rating=5,
            comment="Great",
            is_public=True,
            created_at=datetime(2026, 11, 3, tzinfo=timezone.utc),
        )
        with patch("idolyst.mentorship.service.submit_review", AsyncMock(return_value=review)) as submit:
            response = await client.post(
                f"/api/v1/mentors/sessions/{SESSION_ID}/review", json={"rating": 5, "comment": "Great"}
            )
        assert response.status_code == 200
        assert response.json()["rating"] == 5
        assert submit.await_args.args[1:4] == (SESSION_ID, USER_ID, 5)
        db.commit.assert_awaited_once()

    async def test_review_rating_bounds(self, client: AsyncClient) -> None:
        response = await client.post(f"/api/v1/mentors/sessions/{SESSION_ID}/review", json={"rating": 0})
        assert response.status_code == 422
