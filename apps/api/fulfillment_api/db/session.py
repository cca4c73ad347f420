from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fulfillment_api.config import settings


def build_engine(database_url: str) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    is_sqlite_memory = is_sqlite and ":memory:" in database_url

    engine_kwargs: dict = {"pool_pre_ping": True}

    if is_sqlite:
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.store_timeout_s,
        }

        # Required so in-memory SQLite works across sessions in tests
        if is_sqlite_memory:
            engine_kwargs["poolclass"] = StaticPool

    return create_engine(database_url, **engine_kwargs)


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=bind,
    )


engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)
