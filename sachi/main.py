"""FastAPI application entry point."""

import hashlib
import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles

from sachi import __version__
from sachi.api import auth, meta, pages
from sachi.api.errors import register_exception_handlers
from sachi.config import Settings, get_settings
from sachi.services.auth import configure_hashing
from sachi.services.store import CredentialStore
from sachi.services.sweeper import SessionSweeper

logger = logging.getLogger(__name__)

ASSET_DIRS = ("css", "js", "images", "fonts")
ASSET_CACHE_CONTROL = "public, max-age=31536000, immutable"
# Copied from a 200 onto the 304 that replaces it
NOT_MODIFIED_HEADERS = ("etag", "cache-control", "expires", "vary")


def compute_etag(body: bytes) -> str:
    return f'W/"{hashlib.sha1(body).hexdigest()}"'


def etag_matches(if_none_match: str, etag: str) -> bool:
    """Weak comparison of an If-None-Match header against etag."""
    if if_none_match.strip() == "*":
        return True
    opaque = etag.removeprefix("W/")
    return any(tag.strip().removeprefix("W/") == opaque for tag in if_none_match.split(","))


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application for the given settings."""
    settings = settings or get_settings()
    configure_hashing(settings.bcrypt_rounds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the store, start the session sweep, and tear both down in reverse."""
        store = CredentialStore.open(
            settings.database_path,
            session_ttl=timedelta(hours=settings.session_ttl_hours),
        )
        sweeper = SessionSweeper(store, settings.session_sweep_interval_seconds)
        app.state.store = store
        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            store.close()
            logger.info("Database closed")

    app = FastAPI(
        title="Sachi",
        description="AI-Powered Analytics Platform",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "HEAD", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    # Registered inside gzip so tags describe the uncompressed body
    @app.middleware("http")
    async def etag_validation(request: Request, call_next):
        response = await call_next(request)
        if request.method != "GET" or response.status_code != status.HTTP_200_OK:
            return response

        etag = response.headers.get("etag")
        if etag is None:
            body = b"".join([chunk async for chunk in response.body_iterator])
            etag = compute_etag(body)
            buffered = Response(content=body, status_code=response.status_code)
            buffered.raw_headers = response.raw_headers
            buffered.headers["ETag"] = etag
            response = buffered

        if_none_match = request.headers.get("if-none-match")
        if if_none_match and etag_matches(if_none_match, etag):
            headers = {k: v for k, v in response.headers.items() if k in NOT_MODIFIED_HEADERS}
            return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)
        return response

    app.add_middleware(GZipMiddleware)

    @app.middleware("http")
    async def asset_cache_headers(request: Request, call_next):
        response = await call_next(request)
        top = request.url.path.lstrip("/").split("/", 1)[0]
        if top in ASSET_DIRS and response.status_code == 200:
            response.headers["Cache-Control"] = ASSET_CACHE_CONTROL
        return response

    if settings.is_debug:

        @app.middleware("http")
        async def access_log(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
            )
            return response

    # Register routers
    app.include_router(meta.router)
    app.include_router(auth.router)
    app.include_router(pages.router)

    for name in ASSET_DIRS:
        asset_dir = settings.static_dir / name
        if asset_dir.is_dir():
            app.mount(f"/{name}", StaticFiles(directory=asset_dir), name=name)

    return app
