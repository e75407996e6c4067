"""FastAPI dependencies for authentication and storage."""

from typing import Annotated

from fastapi import Cookie, Depends, HTTPException, Request, Response, status

from sachi.config import Settings
from sachi.services.store import CredentialStore, UserRecord

SESSION_COOKIE = "session_token"
# Older releases scoped the session cookie to /api
LEGACY_COOKIE_PATH = "/api"


def get_settings_from_app(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


def get_store(request: Request) -> CredentialStore:
    """Credential store opened during application startup."""
    return request.app.state.store


def get_optional_user(
    store: Annotated[CredentialStore, Depends(get_store)],
    session_token: Annotated[str | None, Cookie()] = None,
) -> UserRecord | None:
    """Get the signed-in user, or None for guests and stale cookies."""
    if not session_token:
        return None
    return store.validate_session(session_token)


def get_current_user(
    user: Annotated[UserRecord | None, Depends(get_optional_user)],
) -> UserRecord:
    """Get the current authenticated user from the session cookie.

    Missing, unknown and expired sessions all get the same 401.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def set_session_cookie(response: Response, token: str, max_age: int) -> None:
    """Issue the session cookie for the whole site."""
    response.delete_cookie(SESSION_COOKIE, path=LEGACY_COOKIE_PATH, httponly=True, samesite="lax")
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=max_age,
        expires=max_age,
        path="/",
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE, path=LEGACY_COOKIE_PATH, httponly=True, samesite="lax")
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax")


StoreDep = Annotated[CredentialStore, Depends(get_store)]
CurrentUser = Annotated[UserRecord, Depends(get_current_user)]
OptionalUser = Annotated[UserRecord | None, Depends(get_optional_user)]
AppSettings = Annotated[Settings, Depends(get_settings_from_app)]
