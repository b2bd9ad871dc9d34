"""
Background sync queue.

Webhook notifications only enqueue a SyncJob; a single worker thread
drains the queue and runs the event sync with its own database session.
Sync failures are logged and never reach the webhook caller.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.config import GoogleOAuthConfig
from app.services.errors import CalendarSyncError
from app.services.event_sync import EventSyncEngine
from app.services.google_client import GoogleCalendarGateway
from app.services.tokens import TokenManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncJob:
    user_id: str
    gcal_id: str


class SyncQueue:
    """In-process job queue with one worker thread."""

    def __init__(self, runner: Callable[[SyncJob], object], maxsize: int = 1000):
        self._runner = runner
        self._queue: "queue.Queue[Optional[SyncJob]]" = queue.Queue(maxsize)
        self._pending: set[SyncJob] = set()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._work, name="calendar-sync-worker", daemon=True)
        self._thread.start()
        logger.info("Sync worker started")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the worker and wait up to `timeout` seconds for each step."""
        if not self.running:
            return
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning("Sync queue still full after %.1fs, worker not signalled to stop", timeout)
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Sync worker did not exit within %.1fs", timeout)
            return
        self._thread = None
        logger.info("Sync worker stopped")

    def enqueue(self, job: SyncJob) -> bool:
        """
        Schedule a sync. Returns False when the job was coalesced or dropped.

        A job identical to one still waiting in the queue is skipped; the
        pending run will pick up the same changes.
        """
        with self._lock:
            if job in self._pending:
                logger.debug("Sync already pending for %s/%s", job.user_id, job.gcal_id)
                return False
            try:
                self._queue.put_nowait(job)
            except queue.Full:
                logger.warning("Sync queue full, dropping job for %s/%s", job.user_id, job.gcal_id)
                return False
            self._pending.add(job)
        return True

    def join(self) -> None:
        """Block until every queued job has been processed."""
        self._queue.join()

    def _work(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    return
                with self._lock:
                    self._pending.discard(job)
                self._run(job)
            finally:
                self._queue.task_done()

    def _run(self, job: SyncJob) -> None:
        try:
            self._runner(job)
        except CalendarSyncError as e:
            logger.warning("Background sync failed for %s/%s: %s", job.user_id, job.gcal_id, e.message)
        except Exception:
            logger.exception("Background sync crashed for %s/%s", job.user_id, job.gcal_id)


def make_sync_runner(
    session_factory: Callable[[], Session],
    config: GoogleOAuthConfig,
    gateway_factory: Callable[[GoogleOAuthConfig], GoogleCalendarGateway] = GoogleCalendarGateway
) -> Callable[[SyncJob], object]:
    """Build the worker callback that syncs one calendar per job."""

    def run(job: SyncJob):
        db = session_factory()
        try:
            gateway = gateway_factory(config)
            engine = EventSyncEngine(
                db,
                gateway,
                TokenManager(db, gateway),
                window_days=config.full_sync_window_days
            )
            return engine.sync_calendar(job.user_id, job.gcal_id)
        finally:
            db.close()

    return run
