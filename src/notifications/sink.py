"""Publish side of the notification channel."""

from typing import Protocol

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.core.exceptions import RepositoryError
from src.core.models import NotificationEvent
from src.db.schema import DBNotification

logger = structlog.get_logger(__name__)


class NotificationSink(Protocol):
    def publish(self, event: NotificationEvent) -> None:
        """Return once the event is enqueued. Delivery to the player happens later, elsewhere."""
        ...


class OutboxNotificationSink:
    """Enqueue events in the notifications table, drained by NotificationWorker."""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def publish(self, event: NotificationEvent) -> None:
        try:
            self.db.add(
                DBNotification(
                    player=event.player,
                    game_id=event.game,
                    token=event.token,
                    finished=event.finished,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            # The session is shared with the repository: leave it usable for the next call
            self.db.rollback()
            raise RepositoryError(f"Could not enqueue notification for game {event.game}") from e
        logger.debug("notification_enqueued", game_id=str(event.game), finished=event.finished)


def take_pending(db_session: Session, limit: int) -> list[NotificationEvent]:
    """Remove up to `limit` of the oldest queued events from the outbox and return them."""
    rows = db_session.scalars(
        select(DBNotification).order_by(DBNotification.id).limit(limit)
    ).all()
    if not rows:
        return []

    events = [
        NotificationEvent(
            player=row.player, game=row.game_id, token=row.token, finished=row.finished
        )
        for row in rows
    ]
    db_session.execute(
        delete(DBNotification).where(DBNotification.id.in_([row.id for row in rows]))
    )
    db_session.commit()
    return events
