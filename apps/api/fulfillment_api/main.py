import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import Response

from fulfillment_api.config import (
    allowed_origins,
    ensure_secure_runtime_settings,
    settings,
    webhook_secret_configured,
)
from fulfillment_api.db import session as db_session
from fulfillment_api.db.migration_check import assert_db_is_up_to_date, maybe_create_schema
from fulfillment_api.observability import configure_logging, log_event, metrics_store, set_request_id
from fulfillment_api.routers.health import router as health_router
from fulfillment_api.routers.metrics import router as metrics_router
from fulfillment_api.routers.tracking import router as tracking_router
from fulfillment_api.routers.webhooks import router as webhooks_router


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if not settings.testing:
        configure_logging()
    ensure_secure_runtime_settings()

    if not webhook_secret_configured():
        log_event(
            "webhook_secret_missing",
            level=logging.WARNING,
            provider=settings.provider_name,
        )

    if settings.timeline_store == "db":
        if settings.require_migrations:
            assert_db_is_up_to_date(db_session.engine)
        else:
            maybe_create_schema(db_session.engine)
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description="Fulfillment webhook receiver and order tracking timeline API",
    lifespan=lifespan,
)


def custom_openapi():
    """Adds HTTP Bearer (JWT) auth so Swagger UI can call the protected endpoints."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    security_schemes = components.setdefault("securitySchemes", {})
    security_schemes["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next) -> Response:
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    set_request_id(request_id)

    start = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    metrics_store.increment("http_requests_total")
    metrics_store.observe("http_request_duration_seconds", elapsed)
    log_event(
        "http_request",
        order_id=request.path_params.get("order_id"),
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
    )
    return response


app.include_router(health_router)
app.include_router(webhooks_router)
app.include_router(tracking_router)
app.include_router(metrics_router)
