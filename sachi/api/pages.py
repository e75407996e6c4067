"""HTML page routes.

Guests get the marketing pages; the profile page needs a valid session.
Login and registration pages are never cached so a stale copy can't show a
signed-out form to a signed-in user.
"""

from pathlib import Path

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse, RedirectResponse

from sachi.api.dependencies import AppSettings, CurrentUser, OptionalUser

router = APIRouter(tags=["pages"])

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache", "Expires": "0"}
NO_STORE_PAGES = {"login", "register"}


def send_page(static_dir: Path, filename: str, headers: dict | None = None) -> FileResponse:
    """Serve an HTML file from the static directory, or 404."""
    root = static_dir.resolve()
    path = (root / filename).resolve()
    if path.parent != root or not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    return FileResponse(path, media_type="text/html", headers=headers)


@router.get("/", include_in_schema=False)
def home(user: OptionalUser, settings: AppSettings):
    """Marketing page for guests, profile for signed-in users."""
    if user is not None:
        return RedirectResponse("/profile", status_code=status.HTTP_302_FOUND)
    return send_page(settings.static_dir, "index.html")


@router.get("/profile", include_in_schema=False)
@router.get("/profile.html", include_in_schema=False)
def profile_page(current_user: CurrentUser, settings: AppSettings):
    return send_page(settings.static_dir, "profile.html", NO_STORE_HEADERS)


@router.get("/{page}.html", include_in_schema=False)
def html_page(page: str, settings: AppSettings):
    """Any other HTML page shipped in the static directory."""
    headers = NO_STORE_HEADERS if page in NO_STORE_PAGES else None
    return send_page(settings.static_dir, f"{page}.html", headers)
