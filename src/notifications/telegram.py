"""Deliver notifications to players through the Telegram Bot API."""

from typing import Protocol

import structlog
from telegram import Bot
from telegram.error import TelegramError

from src.core.models import NotificationEvent
from src.notifications.messages import render_message

logger = structlog.get_logger(__name__)


class Delivery(Protocol):
    async def __call__(self, event: NotificationEvent) -> bool:
        """Try to deliver once. Returns False when the message was not sent."""
        ...


class TelegramDelivery:
    """Resolve the player to a chat ID and send them the rendered message."""

    def __init__(self, token: str, chat_ids: dict[str, str], frontend_url: str) -> None:
        self._bot = Bot(token=token)
        self._chat_ids = chat_ids
        self._frontend_url = frontend_url

    async def __call__(self, event: NotificationEvent) -> bool:
        chat_id = self._chat_ids.get(event.player)
        if chat_id is None:
            logger.warning("notification_player_unknown", player=event.player, game_id=str(event.game))
            return False

        text = render_message(event, self._frontend_url)
        try:
            await self._bot.send_message(chat_id=chat_id, text=text)
        except TelegramError as e:
            logger.exception("telegram_send_failed", chat_id=chat_id, error=str(e))
            return False
        logger.debug("telegram_message_sent", chat_id=chat_id, game_id=str(event.game))
        return True


class LogDelivery:
    """Fallback when no bot token is configured: the message only ends up in the logs."""

    def __init__(self, frontend_url: str) -> None:
        self._frontend_url = frontend_url

    async def __call__(self, event: NotificationEvent) -> bool:
        logger.info(
            "notification_logged",
            player=event.player,
            game_id=str(event.game),
            text=render_message(event, self._frontend_url),
        )
        return True
