"""Pydantic schemas for API requests and responses."""

from sachi.schemas.auth import (
    AuthResponse,
    CurrentUserResponse,
    ErrorResponse,
    MessageResponse,
    PasswordChange,
    ProfileUpdate,
    UserLogin,
    UserRegister,
    UserResponse,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "ProfileUpdate",
    "PasswordChange",
    "UserResponse",
    "MessageResponse",
    "AuthResponse",
    "CurrentUserResponse",
    "ErrorResponse",
]
