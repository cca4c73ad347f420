"""Startup guards for the SQL timeline store schema.

The Alembic scripts ship inside the package, so the revision lookup works the
same from a source checkout and from an installed wheel. ``alembic.ini`` is
only needed by the ``alembic`` command line.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from fulfillment_api.config import is_production_mode, settings
from fulfillment_api.db.base import Base
from fulfillment_api.observability import log_event

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class SchemaOutOfDateError(RuntimeError):
    def __init__(self, current: str | None, head: str) -> None:
        super().__init__(
            "Database schema not up to date "
            f"(database at {current or 'no revision'}, expected {head}). "
            "Run: alembic upgrade head"
        )
        self.current = current
        self.head = head


def alembic_config() -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return config


def get_alembic_head_revision() -> str:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def get_current_db_revision(engine: Engine) -> str | None:
    # None when the alembic_version table does not exist yet
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def assert_db_is_up_to_date(engine: Engine) -> None:
    current = get_current_db_revision(engine)
    head = get_alembic_head_revision()
    if current != head:
        log_event("schema_out_of_date", level=logging.ERROR, current=current, head=head)
        raise SchemaOutOfDateError(current, head)


def maybe_create_schema(engine: Engine) -> None:
    """Create the tracking tables directly from the models when enabled (demo and tests)."""
    if not settings.auto_create_schema:
        return
    if is_production_mode():
        raise RuntimeError("AUTO_CREATE_SCHEMA must be disabled in FULFILLMENT_APP_MODE=production")

    import fulfillment_api.models  # noqa: F401 (register tracking_records and tracking_events)

    Base.metadata.create_all(bind=engine)
    log_event("schema_auto_created", tables=sorted(Base.metadata.tables))
