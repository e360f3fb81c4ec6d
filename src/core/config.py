from datetime import timedelta

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = "sqlite:///./chess.db"
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    frontend_url: str = "http://localhost:3000"  # Links in notifications point to <frontend_url>/chess/<game id>
    telegram_bot_token: str | None = None  # Without a token, notifications are only logged
    player_chat_ids: dict[str, str] = {}  # Player identifier -> Telegram chat ID
    scheduler_enabled: bool = True
    finished_cleanup_interval: timedelta = timedelta(hours=1)
    idle_cleanup_interval: timedelta = timedelta(days=1)
    stale_game_threshold: timedelta = timedelta(days=3)  # Games untouched for longer are deleted, finished or not
    notification_poll_interval: timedelta = timedelta(seconds=2)

    model_config = {
        "env_file": [".env"],
        "env_prefix": "CHESS_",
        "extra": "ignore",
    }
