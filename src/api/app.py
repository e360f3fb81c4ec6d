from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.orm import Session, sessionmaker

from src.api.error_handlers import game_error_handler, general_exception_handler
from src.api.routes import router as game_router
from src.core.config import Settings
from src.core.exceptions import GameError
from src.db.database import build_engine, build_session_factory
from src.notifications.telegram import Delivery, LogDelivery, TelegramDelivery
from src.notifications.worker import NotificationWorker
from src.rules.engine import ChessRulesEngine, RulesEngine
from src.services.reaper import ReaperScheduler


def build_delivery(settings: Settings) -> Delivery:
    if settings.telegram_bot_token:
        return TelegramDelivery(
            token=settings.telegram_bot_token,
            chat_ids=settings.player_chat_ids,
            frontend_url=settings.frontend_url,
        )
    return LogDelivery(frontend_url=settings.frontend_url)


def create_app(
    settings: Settings,
    session_factory: sessionmaker[Session] | None = None,
    rules: RulesEngine | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application (and the background jobs it runs)."""
    if session_factory is None:
        session_factory = build_session_factory(build_engine(settings.database_url))

    reaper = ReaperScheduler(
        session_factory,
        finished_interval=settings.finished_cleanup_interval,
        idle_interval=settings.idle_cleanup_interval,
        stale_threshold=settings.stale_game_threshold,
    )
    notification_worker = NotificationWorker(
        session_factory,
        deliver=build_delivery(settings),
        poll_interval=settings.notification_poll_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        if settings.scheduler_enabled:
            reaper.start()
            notification_worker.start()
        try:
            yield
        finally:
            await notification_worker.stop()
            await reaper.stop()

    app = FastAPI(title="Chess sessions API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.rules = rules if rules is not None else ChessRulesEngine()
    app.state.reaper = reaper
    app.state.notification_worker = notification_worker

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    app.include_router(game_router)

    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app
