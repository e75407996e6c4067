"""Authentication and profile API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Cookie, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError

from sachi.api.dependencies import (
    AppSettings,
    CurrentUser,
    StoreDep,
    clear_session_cookie,
    set_session_cookie,
)
from sachi.schemas.auth import (
    AuthResponse,
    CurrentUserResponse,
    MessageResponse,
    PasswordChange,
    ProfileUpdate,
    UserLogin,
    UserRegister,
    UserResponse,
)
from sachi.services.auth import (
    MAX_PASSWORD_BYTES,
    MIN_PASSWORD_LENGTH,
    authenticate_user,
    get_password_hash,
    password_too_long,
    verify_password,
)
from sachi.services.store import DuplicateEmailError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

EMAIL_TAKEN = "User with this email already exists"
PASSWORD_TOO_LONG = f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"


@router.post("/register", response_model=MessageResponse)
def register(user_data: UserRegister, store: StoreDep):
    """Register a new user."""
    if not user_data.name or not user_data.email or not user_data.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, email, and password are required",
        )

    # Fast path; the unique constraint still catches concurrent registrations
    if store.get_user_by_email(user_data.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN)

    if password_too_long(user_data.password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=PASSWORD_TOO_LONG)

    password_hash = get_password_hash(user_data.password)
    try:
        store.create_user(user_data.name, user_data.email, user_data.company, password_hash)
    except DuplicateEmailError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=EMAIL_TAKEN) from None
    except SQLAlchemyError:
        logger.exception("Error creating user")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user",
        ) from None

    return MessageResponse(message="User created successfully")


@router.post("/login", response_model=AuthResponse)
def login(credentials: UserLogin, response: Response, store: StoreDep, settings: AppSettings):
    """Login with email and password and start a session."""
    if not credentials.email or not credentials.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    user = authenticate_user(store, credentials.email, credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    try:
        token = store.create_session(user.id)
    except SQLAlchemyError:
        logger.exception(f"Error creating session for user {user.id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session",
        ) from None

    set_session_cookie(response, token, max_age=settings.session_ttl_hours * 3600)

    return AuthResponse(
        message="Login successful",
        user=UserResponse.model_validate(user),
    )


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    store: StoreDep,
    session_token: Annotated[str | None, Cookie()] = None,
):
    """Logout, ending the session if there is one.

    The cookie is cleared even when the session row can't be deleted; the
    row expires on its own and the sweep removes it.
    """
    if session_token:
        try:
            store.delete_session(session_token)
        except SQLAlchemyError:
            logger.exception("Error deleting session on logout")

    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=CurrentUserResponse)
def get_me(current_user: CurrentUser):
    """Get current user information."""
    return CurrentUserResponse(user=UserResponse.model_validate(current_user))


@router.put("/profile", response_model=MessageResponse)
def update_profile(profile: ProfileUpdate, current_user: CurrentUser, store: StoreDep):
    """Update name, email and company of the current user."""
    if not profile.name or not profile.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name and email are required",
        )

    if profile.email != current_user.email and store.get_user_by_email(profile.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")

    try:
        store.update_user(current_user.id, profile.name, profile.email, profile.company)
    except DuplicateEmailError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Email already exists"
        ) from None
    except SQLAlchemyError:
        logger.exception(f"Error updating profile of user {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile",
        ) from None

    return MessageResponse(message="Profile updated successfully")


@router.post("/change-password", response_model=MessageResponse)
def change_password(passwords: PasswordChange, current_user: CurrentUser, store: StoreDep):
    """Change the current user's password. Existing sessions stay valid."""
    if not passwords.current_password or not passwords.new_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current and new password are required",
        )

    if not verify_password(passwords.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )

    if len(passwords.new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"New password must be at least {MIN_PASSWORD_LENGTH} characters long",
        )
    if password_too_long(passwords.new_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=PASSWORD_TOO_LONG)

    try:
        store.update_password(current_user.id, get_password_hash(passwords.new_password))
    except SQLAlchemyError:
        logger.exception(f"Error updating password of user {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update password",
        ) from None

    return MessageResponse(message="Password changed successfully")
