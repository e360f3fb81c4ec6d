"""Text shown to a player for a NotificationEvent."""

from src.core.models import NotificationEvent


def game_link(frontend_url: str, event: NotificationEvent) -> str:
    link = f"{frontend_url.rstrip('/')}/chess/{event.game}"
    if event.token:
        link += f"?token={event.token}"
    return link


def render_message(event: NotificationEvent, frontend_url: str) -> str:
    if event.finished:
        return f"Hi {event.player}\nYour game is over\n{game_link(frontend_url, event)}"
    return f"Hi {event.player}\nIt's your turn to move\n{game_link(frontend_url, event)}"
