"""Background worker that processes pending import jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import settings
from .database import async_session_factory
from .security.throttle import backoff_delay
from .services.import_svc import ImportJobError, claim_next_pending_job, process_import_job

logger = logging.getLogger(__name__)


class ImportJobWorker:
    """Claims and runs one pending import job per poll."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory or async_session_factory
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self.consecutive_failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        if self._task is not None or not settings.import_worker_enabled:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="portal-import-worker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def run_once(self) -> bool:
        """Process at most one job. Returns True if a job was claimed."""
        async with self._session_factory() as db:
            job = await claim_next_pending_job(db)
            if job is None:
                return False
            logger.info("Processing import job %s", job.id)
            try:
                await process_import_job(db, job.id, claimed=True)
            except ImportJobError:
                logger.exception("Import job %s could not be processed", job.id)
            return True

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
                self.consecutive_failures = 0
                delay = settings.import_poll_interval_seconds
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Import worker loop failed")
                delay = backoff_delay(self.consecutive_failures)
                self.consecutive_failures += 1

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def run_forever(self) -> None:
        """Standalone mode for the CLI; returns when stopped."""
        self._stop_event.clear()
        await self._run_loop()

    def request_stop(self) -> None:
        self._stop_event.set()


import_worker = ImportJobWorker()
