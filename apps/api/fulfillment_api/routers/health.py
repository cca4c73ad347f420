from collections.abc import Callable
from typing import Literal

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fulfillment_api.config import settings, webhook_secret_configured
from fulfillment_api.db import session as db_session
from fulfillment_api.observability import log_event
from fulfillment_api.schemas.health import HealthResponse, ReadinessDependency, ReadinessResponse

ReadinessStatus = Literal["ok", "error"]

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    summary="Readiness check",
    response_model=ReadinessResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessResponse}},
)
def readiness(response: Response) -> ReadinessResponse:
    dependencies: list[ReadinessDependency] = []

    if settings.timeline_store == "db":
        database_status = _safe_dependency_status(
            "database", lambda: _database_dependency_status(db_session.SessionLocal)
        )
        dependencies.append(ReadinessDependency(name="database", status=database_status))

    # Without a secret every delivery is rejected, so the receiver is not ready.
    webhook_status: ReadinessStatus = "ok" if webhook_secret_configured() else "error"
    dependencies.append(ReadinessDependency(name="webhook_secret", status=webhook_status))

    readiness_status = "ok" if all(dep.status == "ok" for dep in dependencies) else "degraded"
    if readiness_status != "ok":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status=readiness_status, dependencies=dependencies)


def _safe_dependency_status(
    dependency_name: str,
    checker: Callable[[], ReadinessStatus],
) -> ReadinessStatus:
    try:
        return checker()
    except Exception as exc:
        log_event(
            "readiness_dependency_check_failed",
            dependency=dependency_name,
            error=type(exc).__name__,
        )
        return "error"


def _database_dependency_status(
    session_factory: Callable[[], Session],
) -> ReadinessStatus:
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return "error"
    return "ok"
