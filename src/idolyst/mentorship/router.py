"""Mentor Space endpoints."""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.dependencies import get_current_user
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.dependencies import get_publisher
from idolyst.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from idolyst.mentorship import service
from idolyst.mentorship.schemas import (
    AvailabilityWindow,
    BookSessionRequest,
    DateExceptionRequest,
    MentorApplicationRequest,
    MentorResponse,
    ReviewRequest,
    ReviewResponse,
    SessionResponse,
    SessionStatusUpdate,
    TimeSlotResponse,
)
from idolyst.realtime.publisher import DeferredPublisher

router = APIRouter(prefix="/api/v1/mentors", tags=["Mentor Space"])


@router.get("", response_model=list[MentorResponse])
async def list_mentors(
    expertise: list[str] | None = Query(None),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    min_rating: float | None = Query(None, ge=0, le=5),
    search: str | None = Query(None, max_length=100),
    sort_by: Literal["rating", "price_low", "price_high", "sessions"] | None = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_session),
):
    mentors = await service.list_mentors(
        db,
        expertise=expertise,
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        search=search,
        sort_by=sort_by,
        limit=limit,
        offset=offset,
    )
    return [MentorResponse.model_validate(m) for m in mentors]


@router.post("/apply", response_model=MentorResponse, status_code=201)
async def apply_as_mentor(
    body: MentorApplicationRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        mentor = await service.apply_as_mentor(
            db, user.id, body.bio, body.expertise, body.hourly_rate, body.years_experience
        )
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    return MentorResponse.model_validate(mentor)


@router.put("/me/availability", response_model=list[AvailabilityWindow])
async def replace_availability(
    body: list[AvailabilityWindow],
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    windows = [(w.day_of_week, w.start_time, w.end_time) for w in body]
    try:
        rows = await service.replace_availability(db, user.id, windows)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    return [AvailabilityWindow.model_validate(r) for r in rows]


@router.put("/me/exceptions/{exception_date}", status_code=204)
async def set_date_exception(
    exception_date: date,
    body: DateExceptionRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        await service.set_date_exception(db, user.id, exception_date, body.is_available)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()


@router.get("/sessions", response_model=list[SessionResponse])
async def list_my_sessions(
    role: Literal["mentor", "mentee"] | None = None,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    sessions = await service.list_user_sessions(db, user.id, role)
    return [SessionResponse.model_validate(s) for s in sessions]


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def book_session(
    body: BookSessionRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    try:
        session = await service.book_session(
            db,
            publisher,
            user.id,
            body.mentor_id,
            body.title,
            body.session_date,
            body.start_time,
            body.end_time,
            description=body.description,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Mentor not found") from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    await publisher.flush()
    return SessionResponse.model_validate(session)


@router.patch("/sessions/{session_id}", response_model=SessionResponse)
async def update_session_status(
    session_id: str,
    body: SessionStatusUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    try:
        session = await service.update_session_status(
            db, publisher, session_id, user.id, body.status, body.meeting_link
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Session not found") from e
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    await db.commit()
    await publisher.flush()
    return SessionResponse.model_validate(session)


@router.post("/sessions/{session_id}/review", response_model=ReviewResponse)
async def submit_review(
    session_id: str,
    body: ReviewRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        review = await service.submit_review(db, session_id, user.id, body.rating, body.comment, body.is_public)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Session not found") from e
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    return ReviewResponse.model_validate(review)


@router.get("/{mentor_id}", response_model=MentorResponse)
async def get_mentor(
    mentor_id: str,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        mentor = await service.get_mentor(db, mentor_id, viewer_id=user.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Mentor not found") from e
    return MentorResponse.model_validate(mentor)


@router.get("/{mentor_id}/slots", response_model=list[TimeSlotResponse])
async def available_time_slots(
    mentor_id: str,
    day: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_session),
):
    slots = await service.available_time_slots(db, mentor_id, day)
    return [TimeSlotResponse(**s) for s in slots]


@router.get("/{mentor_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    mentor_id: str,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    reviews = await service.list_mentor_reviews(db, mentor_id, limit)
    return [ReviewResponse.model_validate(r) for r in reviews]
