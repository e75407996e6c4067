"""Authentication and profile schemas.

Request fields default to empty strings so that missing and blank values
reach the handlers, which answer both with the same 400 message.
"""

from pydantic import BaseModel, ConfigDict, Field


class UserRegister(BaseModel):
    """User registration request."""

    name: str = Field("", max_length=255)
    email: str = Field("", max_length=255)
    company: str | None = Field("", max_length=255)
    password: str = Field("", max_length=128)


class UserLogin(BaseModel):
    """User login request."""

    email: str = Field("", max_length=255)
    password: str = Field("", max_length=128)


class ProfileUpdate(BaseModel):
    """Profile edit request."""

    name: str = Field("", max_length=255)
    email: str = Field("", max_length=255)
    company: str | None = Field("", max_length=255)


class PasswordChange(BaseModel):
    """Password change request, camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field("", alias="currentPassword", max_length=128)
    new_password: str = Field("", alias="newPassword", max_length=128)


class UserResponse(BaseModel):
    """User information response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    company: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class AuthResponse(BaseModel):
    """Login response with the signed-in user."""

    success: bool = True
    message: str
    user: UserResponse


class CurrentUserResponse(BaseModel):
    success: bool = True
    user: UserResponse


class ErrorResponse(BaseModel):
    error: bool = True
    message: str
