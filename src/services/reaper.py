"""
Periodic cleanup of the games table.
----
finished-cleanup: deletes every finished game.
idle-cleanup: deletes every game (finished or not) that nobody touched for longer than the staleness threshold.

Both jobs are plain scan-and-delete loops without locks. A move landing on a game while it gets deleted is accepted
as a rare anomaly: only finished or long idle games are targeted.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Awaitable, Callable

import structlog
from sqlalchemy.orm import Session, sessionmaker

from src.core.models import SessionFilter
from src.core.shared_types import Status
from src.db.repository import GameRepository
from src.db.schema import utc_now
from src.db.sql_repository import SQLGameRepository

logger = structlog.get_logger(__name__)


def reap_finished(repository: GameRepository) -> int:
    """Delete all finished games. Returns how many records were actually removed."""
    return _delete_all(repository, SessionFilter(status=Status.FINISHED))


def reap_stale(repository: GameRepository, threshold: timedelta, now: datetime) -> int:
    """Delete all games whose last update is at or before now - threshold."""
    return _delete_all(repository, SessionFilter(updated_before=now - threshold))


def _delete_all(repository: GameRepository, criteria: SessionFilter) -> int:
    deleted = 0
    for session in repository.query(criteria):
        # Someone else may have removed it since the query ran, which is fine
        if repository.delete(session.id):
            deleted += 1
    return deleted


class ReaperScheduler:
    """Runs the two cleanup jobs on independent timers."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        finished_interval: timedelta,
        idle_interval: timedelta,
        stale_threshold: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.finished_interval = finished_interval
        self.idle_interval = idle_interval
        self.stale_threshold = stale_threshold
        self._clock = clock
        self._tasks: list[asyncio.Task[None]] = []

    def run_finished_cleanup(self) -> int:
        with self._session_factory() as db:
            deleted = reap_finished(SQLGameRepository(db))
        logger.info("finished_cleanup_done", deleted=deleted)
        return deleted

    def run_idle_cleanup(self) -> int:
        with self._session_factory() as db:
            deleted = reap_stale(SQLGameRepository(db), self.stale_threshold, self._clock())
        logger.info("idle_cleanup_done", deleted=deleted, threshold=str(self.stale_threshold))
        return deleted

    def start(self) -> None:
        """Schedule both jobs on the running event loop. Each runs once right away, then every interval."""
        self._tasks = [
            asyncio.create_task(
                self._every(self.finished_interval, self._in_thread(self.run_finished_cleanup)),
                name="finished-cleanup",
            ),
            asyncio.create_task(
                self._every(self.idle_interval, self._in_thread(self.run_idle_cleanup)),
                name="idle-cleanup",
            ),
        ]
        logger.debug("reaper_scheduler_started")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.debug("reaper_scheduler_stopped")

    @staticmethod
    def _in_thread(job: Callable[[], int]) -> Callable[[], Awaitable[int]]:
        """Database calls are blocking: keep them off the event loop."""

        async def run() -> int:
            return await asyncio.to_thread(job)

        return run

    @staticmethod
    async def _every(interval: timedelta, job: Callable[[], Awaitable[int]]) -> None:
        while True:
            try:
                await job()
            except Exception:
                # One failed run must not stop the schedule
                logger.exception("cleanup_job_failed")
            await asyncio.sleep(interval.total_seconds())
