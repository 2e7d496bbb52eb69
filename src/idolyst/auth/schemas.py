"""Form schemas for sign-up, login, password recovery and profile editing.

Every rule carries the message shown inline next to the offending field;
``field_errors`` flattens a ``ValidationError`` into ``{field: message}``.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, ValidationError, ValidationInfo, field_validator

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_.]{3,20}$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$")

SignUpRole = Literal["entrepreneur", "mentor"]


def validate_username(value: str) -> str:
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters")
    if len(value) > 20:
        raise ValueError("Username must be less than 20 characters")
    if not USERNAME_RE.match(value):
        raise ValueError("Username can only contain letters, numbers, underscores and dots")
    return value


def validate_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not PASSWORD_RE.match(value):
        raise ValueError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
    return value


def _confirm_matches(value: str, info: ValidationInfo) -> str:
    password = info.data.get("password")
    # A failed password is reported on its own field.
    if password is not None and value != password:
        raise ValueError("Passwords do not match")
    return value


class SignUpForm(BaseModel):
    username: str
    email: EmailStr
    password: str
    confirm_password: str
    full_name: str | None = None
    roles: list[SignUpRole]

    check_username = field_validator("username")(validate_username)
    check_password = field_validator("password")(validate_password)
    check_confirm_password = field_validator("confirm_password")(_confirm_matches)

    @field_validator("roles")
    @classmethod
    def at_least_one_role(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Please select at least one role")
        return v


class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class ForgotPasswordForm(BaseModel):
    email: EmailStr


class ResetPasswordForm(BaseModel):
    password: str
    confirm_password: str

    check_password = field_validator("password")(validate_password)
    check_confirm_password = field_validator("confirm_password")(_confirm_matches)


class ProfileForm(BaseModel):
    username: str
    full_name: str | None = None
    bio: str | None = None

    check_username = field_validator("username")(validate_username)

    @field_validator("bio")
    @classmethod
    def bio_length(cls, v: str | None) -> str | None:
        if v is not None and len(v) > 200:
            raise ValueError("Bio must be less than 200 characters")
        return v


def field_errors(exc: ValidationError) -> dict[str, str]:
    """First error message per top-level field, without pydantic's prefix."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error["loc"] else "__root__"
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, message)
    return errors
