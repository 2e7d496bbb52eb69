"""Pydantic models for Mentor Space endpoints."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MentorProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None


class MentorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bio: str
    expertise: list[str]
    hourly_rate: float
    years_experience: int
    is_featured: bool
    avg_rating: float
    total_sessions: int
    total_reviews: int
    status: str
    profile: MentorProfileSummary | None = None


class MentorApplicationRequest(BaseModel):
    bio: str = Field(..., min_length=1, max_length=2000)
    expertise: list[str] = Field(..., min_length=1)
    hourly_rate: float = Field(..., gt=0)
    years_experience: int = Field(0, ge=0, le=80)


class AvailabilityWindow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def _ordered(self) -> AvailabilityWindow:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class DateExceptionRequest(BaseModel):
    is_available: bool = False


class TimeSlotResponse(BaseModel):
    date: str
    start_time: str
    end_time: str
    is_available: bool


class BookSessionRequest(BaseModel):
    mentor_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    session_date: date
    start_time: time
    end_time: time


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mentor_id: str
    mentee_id: str
    title: str
    description: str | None = None
    session_date: date
    start_time: time
    end_time: time
    status: str
    meeting_link: str | None = None
    price: float
    payment_status: bool


class SessionStatusUpdate(BaseModel):
    status: Literal["scheduled", "completed", "cancelled", "rescheduled"]
    meeting_link: str | None = Field(None, max_length=500)


class ReviewRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=2000)
    is_public: bool = True


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    reviewer_id: str
    rating: int
    comment: str | None = None
    is_public: bool
    created_at: datetime | None = None
    reviewer: MentorProfileSummary | None = None
