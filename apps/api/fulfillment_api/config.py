from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "merch-fulfillment-jwt-secret"
ALLOWED_APP_MODES = {"demo", "pilot", "production"}
ALLOWED_TIMELINE_STORES = {"db", "memory"}
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    app_name: str = "Merch Fulfillment Tracking Service"
    app_mode: str = Field(default="demo", validation_alias="FULFILLMENT_APP_MODE")

    database_url: str = Field(
        default="sqlite+pysqlite:///./fulfillment.db",
        validation_alias="FULFILLMENT_DATABASE_URL",
    )
    cors_allowed_origins: str = "http://localhost:3000"
    testing: bool = Field(default=False, validation_alias="FULFILLMENT_TESTING")
    auto_create_schema: bool = True
    require_migrations: bool = False

    timeline_store: str = Field(default="db", validation_alias="FULFILLMENT_TIMELINE_STORE")
    store_timeout_s: float = 5.0

    provider_name: str = "printify"
    provider_webhook_secret: str = Field(default="", validation_alias="PROVIDER_WEBHOOK_SECRET")

    tracking_api_base_url: str = Field(default="", validation_alias="TRACKING_API_BASE_URL")
    tracking_api_timeout_s: float = 2.0
    tracking_api_max_retries: int = 2
    tracking_api_backoff_s: float = 0.2

    jwt_secret: str = DEFAULT_JWT_SECRET
    allowed_roles: str = "SERVICE,OPS,ADMIN"
    service_token_subject: str = "webhook-ingest"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("timeline_store")
    @classmethod
    def validate_timeline_store(cls, value: str) -> str:
        store = value.lower().strip()
        if store not in ALLOWED_TIMELINE_STORES:
            allowed = ", ".join(sorted(ALLOWED_TIMELINE_STORES))
            raise ValueError(f"FULFILLMENT_TIMELINE_STORE must be one of: {allowed}")
        return store

    @field_validator("app_mode")
    @classmethod
    def validate_app_mode(cls, value: str) -> str:
        mode = value.lower().strip()
        if mode not in ALLOWED_APP_MODES:
            allowed = ", ".join(sorted(ALLOWED_APP_MODES))
            raise ValueError(f"FULFILLMENT_APP_MODE must be one of: {allowed}")
        return mode


settings = Settings()


def is_production_mode() -> bool:
    return settings.app_mode == "production"


def allowed_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]


def allowed_roles_list() -> list[str]:
    return [value.strip() for value in settings.allowed_roles.split(",") if value.strip()]


def webhook_secret_configured() -> bool:
    return bool(settings.provider_webhook_secret.strip())


def ensure_secure_runtime_settings() -> None:
    """Fail fast when production-like runtime uses insecure defaults.

    A missing webhook secret is deliberately not fatal here: signature
    verification fails closed, so every delivery is rejected with 401.
    """
    if settings.testing:
        return
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError(
            "JWT_SECRET must be set to a non-default value when FULFILLMENT_TESTING is false"
        )
    if len(settings.jwt_secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            "JWT_SECRET must be at least "
            f"{MIN_SECRET_LENGTH} characters when FULFILLMENT_TESTING is false"
        )
    if is_production_mode() and settings.timeline_store != "db":
        raise RuntimeError(
            "FULFILLMENT_TIMELINE_STORE must be 'db' when FULFILLMENT_APP_MODE is production"
        )
    if is_production_mode() and _is_sqlite_url(settings.database_url):
        raise RuntimeError(
            "FULFILLMENT_DATABASE_URL must use postgres when FULFILLMENT_APP_MODE is production"
        )


def _is_sqlite_url(database_url: str) -> bool:
    value = database_url.strip().lower()
    return value.startswith("sqlite")
