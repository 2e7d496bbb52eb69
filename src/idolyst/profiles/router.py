"""Profile, privacy settings and avatar endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.dependencies import get_current_user
from idolyst.auth.schemas import ProfileForm
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.dependencies import get_publisher
from idolyst.errors import StorageError, ValidationFailedError
from idolyst.profiles import service
from idolyst.profiles.schemas import (
    AvatarResponse,
    PrivacySettingsResponse,
    PrivacySettingsUpdate,
    ProfileResponse,
    UsernameAvailabilityResponse,
)
from idolyst.realtime.publisher import DeferredPublisher
from idolyst.storage.service import StorageService, get_storage_service

router = APIRouter(prefix="/api/v1", tags=["Profiles"])


def get_storage() -> StorageService:
    return get_storage_service()


@router.get("/profile", response_model=ProfileResponse)
async def get_my_profile(user: Profile = Depends(get_current_user)):
    return ProfileResponse.model_validate(user)


@router.put("/profile", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileForm,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        profile = await service.update_profile(db, user.id, body)
    except ValidationFailedError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.get("/profile/username-available", response_model=UsernameAvailabilityResponse)
async def username_available(
    username: str = Query(..., min_length=1, max_length=64),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    available = await service.check_username_availability(db, username, user.id)
    return UsernameAvailabilityResponse(username=username, available=available)


@router.post("/profile/avatar", response_model=AvatarResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    storage: StorageService = Depends(get_storage),
):
    """Upload a png/jpeg/gif avatar (max 5 MB)."""
    data = await file.read()
    try:
        url = await service.upload_avatar(db, storage, user.id, data, file.content_type or "")
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return AvatarResponse(avatar_url=url)


@router.get("/privacy-settings", response_model=PrivacySettingsResponse)
async def get_privacy_settings(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    settings = await service.fetch_privacy_settings(db, user.id)
    await db.commit()
    return PrivacySettingsResponse(**settings)


@router.patch("/privacy-settings", response_model=PrivacySettingsResponse)
async def update_privacy_settings(
    body: PrivacySettingsUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    try:
        settings = await service.update_privacy_settings(db, publisher, user.id, body.model_dump(exclude_none=True))
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    await publisher.flush()
    return PrivacySettingsResponse(**settings)
