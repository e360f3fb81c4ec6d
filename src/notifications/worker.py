"""Downstream subscriber: drains the notification outbox and hands every event to a Delivery."""

import asyncio
from datetime import timedelta

import structlog
from sqlalchemy.orm import Session, sessionmaker

from src.core.models import NotificationEvent
from src.notifications.sink import take_pending
from src.notifications.telegram import Delivery

logger = structlog.get_logger(__name__)


class NotificationWorker:
    """
    Background task polling the outbox.

    Events are removed from the outbox before delivery is attempted and a failed delivery is not retried,
    so a player gets each message at most once.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        deliver: Delivery,
        poll_interval: timedelta,
        batch_size: int = 50,
    ) -> None:
        self._session_factory = session_factory
        self._deliver = deliver
        self._poll_interval = poll_interval
        self._batch_size = batch_size
        self._task: asyncio.Task[None] | None = None

    async def drain(self) -> int:
        """Deliver everything currently queued. Returns the number of events handled."""
        handled = 0
        while True:
            events = await asyncio.to_thread(self._take_batch)
            if not events:
                return handled
            for event in events:
                try:
                    delivered = await self._deliver(event)
                except Exception:
                    logger.exception("notification_delivery_error", game_id=str(event.game))
                    delivered = False
                if not delivered:
                    logger.warning("notification_dropped", game_id=str(event.game))
                handled += 1

    def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="notification-worker")
        logger.debug("notification_worker_started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("notification_worker_stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.drain()
            except Exception:
                logger.exception("notification_worker_poll_failed")
            await asyncio.sleep(self._poll_interval.total_seconds())

    def _take_batch(self) -> list[NotificationEvent]:
        with self._session_factory() as db:
            return take_pending(db, self._batch_size)
