import os

os.environ.setdefault("FULFILLMENT_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("FULFILLMENT_TESTING", "true")
os.environ.setdefault("FULFILLMENT_TIMELINE_STORE", "memory")
os.environ.setdefault("PROVIDER_WEBHOOK_SECRET", "test-webhook-secret")

import json  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import fulfillment_api.models  # noqa: F401,E402
from fulfillment_api.auth.jwt import issue_jwt  # noqa: E402
from fulfillment_api.config import settings  # noqa: E402
from fulfillment_api.db.base import Base  # noqa: E402
from fulfillment_api.db.session import build_session_factory  # noqa: E402
from fulfillment_api.db.session import engine as app_engine  # noqa: E402
from fulfillment_api.main import app  # noqa: E402
from fulfillment_api.observability import metrics_store  # noqa: E402
from fulfillment_api.services.signature import compute_signature  # noqa: E402
from fulfillment_api.services.sql_timeline_store import SqlTimelineStore  # noqa: E402
from fulfillment_api.services.store import reset_store  # noqa: E402

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture(scope="session", autouse=True)
def enable_testing_mode():
    original = settings.testing
    settings.testing = True
    yield
    settings.testing = original


@pytest.fixture(autouse=True)
def webhook_secret():
    original = settings.provider_webhook_secret
    settings.provider_webhook_secret = WEBHOOK_SECRET
    yield WEBHOOK_SECRET
    settings.provider_webhook_secret = original


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=app_engine)
    Base.metadata.create_all(bind=app_engine)
    yield


@pytest.fixture(autouse=True)
def reset_in_memory_store():
    reset_store()
    yield


@pytest.fixture(autouse=True)
def reset_metrics_store():
    metrics_store.reset()
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield SqlTimelineStore(build_session_factory(engine), lock_timeout_s=2.0)
    finally:
        engine.dispose()


@pytest.fixture
def auth_headers():
    def _headers(role: str, sub: str) -> dict[str, str]:
        token = issue_jwt({"sub": sub, "role": role}, settings.jwt_secret)
        return {"Authorization": f"Bearer {token}"}

    return {
        "service": _headers("SERVICE", "webhook-ingest"),
        "ops": _headers("OPS", "ops-1"),
        "admin": _headers("ADMIN", "admin-1"),
        "customer": _headers("CUSTOMER", "customer-1"),
    }


@pytest.fixture
def signed_webhook():
    """Builds ``(body, headers)`` for a provider delivery signed with the test secret."""

    def _build(
        payload: dict,
        *,
        secret: str = WEBHOOK_SECRET,
        extra_headers: dict[str, str] | None = None,
    ) -> tuple[bytes, dict[str, str]]:
        body = json.dumps(payload).encode()
        headers = {
            "Content-Type": "application/json",
            "X-Provider-Signature": compute_signature(body, secret),
        }
        headers.update(extra_headers or {})
        return body, headers

    return _build
