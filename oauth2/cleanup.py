"""
Periodic sweep of expired OAuth2 refresh tokens.

Expired rows are deleted in batches so a large backlog never holds one
long transaction. The same sweep evicts stale client-cache entries.
"""

import asyncio
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.orm import Session

from oauth2.repository import RefreshTokenRepository
from oauth2.utils import utcnow


class RefreshTokenCleanup:
    """
    Batch deletion of expired refresh tokens, on demand or on a timer.

    Args:
        session_factory: Callable returning a new Session (closed by this class)
        service: AuthorizationService whose client cache is swept alongside
        interval_seconds: Period of the background loop
        batch_size: Maximum rows deleted per transaction
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        service=None,
        interval_seconds: int = 1800,
        batch_size: int = 1000
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.session_factory = session_factory
        self.service = service
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._task: Optional[asyncio.Task] = None

    def run_once(self) -> int:
        """
        Delete every expired refresh token, one batch per commit.

        Returns:
            Number of rows deleted
        """
        total = 0
        db = self.session_factory()
        try:
            now = utcnow()
            while True:
                deleted = RefreshTokenRepository.delete_expired_batch(db, now, self.batch_size)
                db.commit()
                total += deleted
                if deleted < self.batch_size:
                    break
        except Exception as e:
            db.rollback()
            logger.error(f"[CLEANUP] Refresh token sweep failed after {total} deletions: {e}")
            raise
        finally:
            db.close()

        if self.service is not None:
            self.service.cleanup()

        logger.info(f"[CLEANUP] Deleted {total} expired OAuth2 refresh tokens")
        return total

    def count_expired(self) -> int:
        db = self.session_factory()
        try:
            return RefreshTokenRepository.count_expired(db, utcnow())
        finally:
            db.close()

    # ==================== BACKGROUND LOOP ====================

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Schedule the periodic sweep on the running event loop"""
        if self.running:
            logger.warning("[CLEANUP] Sweep already running")
            return self._task

        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"[CLEANUP] Scheduled refresh token sweep every {self.interval_seconds}s")
        return self._task

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                # Next tick retries
                logger.error(f"[CLEANUP] Scheduled sweep failed: {e}")

    async def stop(self):
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[CLEANUP] Refresh token sweep stopped")
