"""Periodic removal of expired login sessions."""

import asyncio
import contextlib
import logging

from sqlalchemy.exc import SQLAlchemyError

from sachi.services.store import CredentialStore

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Deletes expired sessions once at startup and then on a fixed interval.

    Validation already rejects expired rows, so the sweep only keeps the
    sessions table small. It runs the blocking delete in a worker thread and
    never holds anything that request handlers wait on.
    """

    def __init__(self, store: CredentialStore, interval_seconds: float = 3600):
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    async def sweep_once(self) -> int | None:
        """Run a single cleanup pass. Returns rows removed, or None on failure."""
        try:
            removed = await asyncio.to_thread(self.store.cleanup_expired_sessions)
        except SQLAlchemyError as e:
            logger.error(f"Session cleanup error: {e}")
            return None

        if removed:
            logger.info(f"Removed {removed} expired sessions")
        else:
            logger.debug("No expired sessions to remove")
        return removed

    async def run(self) -> None:
        while True:
            await self.sweep_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        """Schedule the sweep loop on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="session-sweeper")
        return self._task

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
