"""Tests for profile, privacy and avatar endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from conftest import USER_ID, scalar_result
from idolyst.db.models import PrivacySettings, Profile
from idolyst.errors import ValidationFailedError
from idolyst.profiles.router import get_storage
from idolyst.profiles.service import DEFAULT_PRIVACY
from idolyst.storage.service import LocalStorageBackend, StorageService

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.mark.asyncio
class TestProfileApi:
    async def test_get(self, client: AsyncClient) -> None:
        body = (await client.get("/api/v1/profile")).json()
        assert body["id"] == USER_ID
        assert body["username"] == "alice"

    async def test_update(self, client: AsyncClient, db: MagicMock, profile: Profile) -> None:
        db.get.return_value = profile
        response = await client.put("/api/v1/profile", json={"username": "alice", "bio": "Building things"})
        assert response.status_code == 200
        assert response.json()["bio"] == "Building things"
        db.commit.assert_awaited_once()

    async def test_username_taken(self, client: AsyncClient) -> None:
        error = ValidationFailedError("Username is already taken", field="username")
        with patch("idolyst.profiles.service.update_profile", AsyncMock(side_effect=error)):
            response = await client.put("/api/v1/profile", json={"username": "bobby"})
        assert response.status_code == 409
        assert response.json()["detail"] == "Username is already taken"

    async def test_username_available(self, client: AsyncClient, db: MagicMock) -> None:
        db.execute.return_value = scalar_result(None)
        body = (await client.get("/api/v1/profile/username-available", params={"username": "newbie"})).json()
        assert body == {"username": "newbie", "available": True}


@pytest.mark.asyncio
class TestAvatarApi:
    @pytest.fixture
    def storage(self, app: FastAPI, tmp_path: Path) -> StorageService:
        service = StorageService(LocalStorageBackend("post-media", "http://cdn.test/post-media", str(tmp_path)))
        app.dependency_overrides[get_storage] = lambda: service
        return service

    async def test_upload(self, client: AsyncClient, db: MagicMock, profile: Profile, storage: StorageService) -> None:
        db.get.return_value = profile
        response = await client.post("/api/v1/profile/avatar", files={"file": ("me.png", PNG, "image/png")})
        assert response.status_code == 200
        url = response.json()["avatar_url"]
        assert url.startswith(f"http://cdn.test/post-media/{USER_ID}/avatars/")
        assert url.endswith(".png")
        assert profile.avatar_url == url

    async def test_rejects_type(
        self, client: AsyncClient, db: MagicMock, profile: Profile, storage: StorageService
    ) -> None:
        db.get.return_value = profile
        response = await client.post("/api/v1/profile/avatar", files={"file": ("me.webp", b"RIFF", "image/webp")})
        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["detail"]
        db.commit.assert_not_awaited()


@pytest.mark.asyncio
class TestPrivacyApi:
    async def test_get_defaults(self, client: AsyncClient, db: MagicMock) -> None:
        db.execute.return_value = scalar_result(None)
        body = (await client.get("/api/v1/privacy-settings")).json()
        assert {k: body[k] for k in DEFAULT_PRIVACY} == DEFAULT_PRIVACY

    async def test_patch(self, client: AsyncClient, db: MagicMock) -> None:
        stored = PrivacySettings(
            user_id=USER_ID,
            updated_at=datetime.now(timezone.utc) - timedelta(days=1),
            **DEFAULT_PRIVACY,
        )
        db.execute.return_value = scalar_result(stored)
        response = await client.patch("/api/v1/privacy-settings", json={"messaging_permissions": "followers"})
        assert response.status_code == 200
        assert response.json()["messaging_permissions"] == "followers"

    async def test_patch_invalid_value(self, client: AsyncClient) -> None:
        response = await client.patch("/api/v1/privacy-settings", json={"profile_visibility": "secret"})
        assert response.status_code == 422
        assert "profile_visibility" in response.json()["errors"]
