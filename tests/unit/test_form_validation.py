"""Tests for form schemas and inline error flattening."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from idolyst.auth.schemas import (
    LoginForm,
    ProfileForm,
    ResetPasswordForm,
    SignUpForm,
    field_errors,
)

VALID_SIGNUP = {
    "username": "ada.l",
    "email": "ada@idolyst.io",
    "password": "Secret123",
    "confirm_password": "Secret123",
    "roles": ["entrepreneur"],
}


def _errors(model: type, data: dict) -> dict[str, str]:
    with pytest.raises(ValidationError) as exc_info:
        model(**data)
    return field_errors(exc_info.value)


class TestSignUpForm:
    def test_valid(self) -> None:
        form = SignUpForm(**VALID_SIGNUP)
        assert form.roles == ["entrepreneur"]

    @pytest.mark.parametrize(
        ("username", "message"),
        [
            ("ab", "Username must be at least 3 characters"),
            ("a" * 21, "Username must be less than 20 characters"),
            ("bad name", "Username can only contain letters, numbers, underscores and dots"),
        ],
    )
    def test_username_rules(self, username: str, message: str) -> None:
        assert _errors(SignUpForm, {**VALID_SIGNUP, "username": username})["username"] == message

    def test_short_password(self) -> None:
        errors = _errors(SignUpForm, {**VALID_SIGNUP, "password": "Ab1", "confirm_password": "Ab1"})
        assert errors["password"] == "Password must be at least 8 characters"

    def test_password_needs_mixed_characters(self) -> None:
        errors = _errors(SignUpForm, {**VALID_SIGNUP, "password": "alllower1", "confirm_password": "alllower1"})
        assert "uppercase" in errors["password"]

    def test_confirmation_mismatch(self) -> None:
        errors = _errors(SignUpForm, {**VALID_SIGNUP, "confirm_password": "Secret124"})
        assert errors == {"confirm_password": "Passwords do not match"}

    def test_needs_a_role(self) -> None:
        assert _errors(SignUpForm, {**VALID_SIGNUP, "roles": []})["roles"] == "Please select at least one role"

    def test_unknown_role(self) -> None:
        assert "roles" in _errors(SignUpForm, {**VALID_SIGNUP, "roles": ["investor"]})

    def test_bad_email(self) -> None:
        assert "email" in _errors(SignUpForm, {**VALID_SIGNUP, "email": "nope"})


def test_login_normalizes_email() -> None:
    form = LoginForm(email="Ada@Idolyst.IO", password="x")
    assert form.email == "ada@idolyst.io"
    assert form.remember_me is False


def test_reset_password_mismatch() -> None:
    errors = _errors(ResetPasswordForm, {"password": "Secret123", "confirm_password": "Other1234"})
    assert errors == {"confirm_password": "Passwords do not match"}


def test_profile_bio_limit() -> None:
    assert _errors(ProfileForm, {"username": "ada", "bio": "x" * 201})["bio"] == "Bio must be less than 200 characters"
    assert ProfileForm(username="ada", bio="x" * 200).bio == "x" * 200
