"""Pydantic schemas for registration, confirmation, login and password reset."""

import re

from pydantic import BaseModel, Field, field_validator, model_validator

_EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)
_USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{3,64}$")


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=1, max_length=72)
    confirm_password: str = Field(..., min_length=1, max_length=72)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not _USERNAME_PATTERN.match(v):
            raise ValueError(
                "Username must be 3-64 characters: letters, digits, '.', '_' or '-'"
            )
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match!")
        return self


class RegisterResponse(BaseModel):
    message: str = "Registration successful! Check your email to confirm your account."
    email_sent: bool = True


class EmailRequest(BaseModel):
    email: str = Field(..., max_length=320)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class MessageResponse(BaseModel):
    message: str


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=320, description="Username or email")
    password: str = Field(..., min_length=1, max_length=72)


class AccountResponse(BaseModel):
    username: str
    email: str
    role: str


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=1, max_length=72)
    confirm_password: str = Field(..., min_length=1, max_length=72)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match!")
        return self
