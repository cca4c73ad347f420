from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect, text

from fulfillment_api.config import settings
from fulfillment_api.db import session as db_session
from fulfillment_api.db.migration_check import (
    MIGRATIONS_DIR,
    SchemaOutOfDateError,
    alembic_config,
    assert_db_is_up_to_date,
    get_alembic_head_revision,
    get_current_db_revision,
    maybe_create_schema,
)
from fulfillment_api.main import app


@pytest.fixture
def sqlite_engine(tmp_path: Path):
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'migration-check.db'}")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def startup_settings(monkeypatch):
    monkeypatch.setattr(settings, "testing", True)
    monkeypatch.setattr(settings, "timeline_store", "db")
    return settings


def _stamp_head(engine) -> None:
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)"))
        connection.execute(
            text("INSERT INTO alembic_version (version_num) VALUES (:rev)"),
            {"rev": get_alembic_head_revision()},
        )


def test_alembic_head_is_tracking_tables_revision():
    assert get_alembic_head_revision() == "20261019_0001"


def test_alembic_scripts_resolve_from_inside_the_package():
    import fulfillment_api

    package_root = Path(fulfillment_api.__file__).resolve().parent
    script_location = Path(alembic_config().get_main_option("script_location"))

    assert script_location == MIGRATIONS_DIR
    assert package_root in script_location.parents
    assert (script_location / "env.py").is_file()
    assert alembic_config().config_file_name is None


def test_head_lookup_does_not_depend_on_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert get_alembic_head_revision() == "20261019_0001"


def test_assert_db_is_up_to_date_fails_when_alembic_version_missing(sqlite_engine):
    with pytest.raises(RuntimeError, match="Database schema not up to date") as exc_info:
        assert_db_is_up_to_date(sqlite_engine)

    assert isinstance(exc_info.value, SchemaOutOfDateError)
    assert exc_info.value.current is None
    assert exc_info.value.head == "20261019_0001"


def test_assert_db_is_up_to_date_passes_at_head(sqlite_engine):
    _stamp_head(sqlite_engine)

    assert get_current_db_revision(sqlite_engine) == get_alembic_head_revision()
    assert_db_is_up_to_date(sqlite_engine)


def test_maybe_create_schema_creates_tracking_tables(sqlite_engine, monkeypatch):
    monkeypatch.setattr(settings, "auto_create_schema", True)
    monkeypatch.setattr(settings, "app_mode", "demo")

    maybe_create_schema(sqlite_engine)

    tables = set(inspect(sqlite_engine).get_table_names())
    assert {"tracking_records", "tracking_events"} <= tables


def test_maybe_create_schema_refuses_production(sqlite_engine, monkeypatch):
    monkeypatch.setattr(settings, "auto_create_schema", True)
    monkeypatch.setattr(settings, "app_mode", "production")

    with pytest.raises(RuntimeError, match="AUTO_CREATE_SCHEMA"):
        maybe_create_schema(sqlite_engine)


def test_app_startup_fails_fast_when_revision_missing(sqlite_engine, startup_settings, monkeypatch):
    monkeypatch.setattr(db_session, "engine", sqlite_engine)
    monkeypatch.setattr(startup_settings, "require_migrations", True)

    with pytest.raises(RuntimeError, match="Database schema not up to date"):
        with TestClient(app):
            pass


def test_app_startup_passes_when_db_at_head(sqlite_engine, startup_settings, monkeypatch):
    _stamp_head(sqlite_engine)
    monkeypatch.setattr(db_session, "engine", sqlite_engine)
    monkeypatch.setattr(startup_settings, "require_migrations", True)

    with TestClient(app):
        pass


def test_app_startup_auto_creates_schema_in_demo(sqlite_engine, startup_settings, monkeypatch):
    monkeypatch.setattr(db_session, "engine", sqlite_engine)
    monkeypatch.setattr(startup_settings, "require_migrations", False)
    monkeypatch.setattr(startup_settings, "auto_create_schema", True)
    monkeypatch.setattr(startup_settings, "app_mode", "demo")

    with TestClient(app):
        pass

    assert "tracking_records" in inspect(sqlite_engine).get_table_names()
