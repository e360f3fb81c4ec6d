"""Database engine and session factory"""

from typing import Any

from sqlalchemy import Engine, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.db.schema import Base


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create the engine and ensure all tables exist."""
    options: dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite"):
        # Connections are shared by the request threadpool and the background jobs
        options["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url:
            options["poolclass"] = StaticPool

    engine = create_engine(database_url, **options)
    Base.metadata.create_all(bind=engine)
    return engine


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False)
