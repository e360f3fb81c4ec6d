from typing import Annotated, Iterator, cast

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from src.db.sql_repository import SQLGameRepository
from src.notifications.sink import OutboxNotificationSink
from src.rules.engine import RulesEngine
from src.services.game_service import GameSessionService


def get_db(request: Request) -> Iterator[Session]:
    session_factory = cast(sessionmaker[Session], request.app.state.session_factory)
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_service(request: Request, db: Annotated[Session, Depends(get_db)]) -> GameSessionService:
    return GameSessionService(
        repository=SQLGameRepository(db),
        rules=cast(RulesEngine, request.app.state.rules),
        notifier=OutboxNotificationSink(db),
    )


ServiceDep = Annotated[GameSessionService, Depends(get_service)]
