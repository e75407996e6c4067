"""Service metadata endpoints."""

from fastapi import APIRouter

from sachi import __version__
from sachi.api.dependencies import AppSettings

router = APIRouter(prefix="/api", tags=["meta"])

PAGES = [
    "/",
    "/product.html",
    "/pricing.html",
    "/about.html",
    "/login.html",
    "/register.html",
    "/profile.html",
]


@router.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@router.get("/info")
def info(settings: AppSettings):
    return {
        "name": "Sachi",
        "description": "AI-Powered Analytics Platform",
        "version": __version__,
        "mode": settings.environment,
    }


@router.get("/assets")
def assets():
    """Where the front-end assets live."""
    return {
        "css": "/css/styles.css",
        "js": "/js/main.js",
        "pages": PAGES,
        "static_root": "/web/static",
    }
