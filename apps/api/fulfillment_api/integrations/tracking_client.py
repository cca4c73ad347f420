import time
from typing import Protocol

import httpx
from fastapi import Depends
from pydantic import BaseModel, ValidationError

from fulfillment_api.auth.jwt import issue_service_token
from fulfillment_api.config import settings
from fulfillment_api.integrations.errors import (
    IntegrationRejectedError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)
from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.schemas.tracking import TrackingUpdateRequest
from fulfillment_api.services.store import get_timeline_store
from fulfillment_api.services.timeline_store import TimelineStore
from fulfillment_api.services.tracking_service import record_tracking_update

SERVICE_NAME = "tracking_api"
TRACKING_UPDATE_PATH = "/fulfillment/tracking"


class TrackingUpdateAck(BaseModel):
    order_id: str
    outcome: UpdateOutcome


class TrackingUpdateClient(Protocol):
    def send_update(self, update: TrackingUpdateRequest) -> TrackingUpdateAck: ...


class LocalTrackingClient:
    """Applies updates in-process against the configured timeline store."""

    def __init__(self, store: TimelineStore) -> None:
        self._store = store

    def send_update(self, update: TrackingUpdateRequest) -> TrackingUpdateAck:
        result = record_tracking_update(self._store, update)
        return TrackingUpdateAck(order_id=update.order_id, outcome=result.outcome)


class HttpTrackingClient:
    """Posts updates to a remote tracking API; any non-2xx answer is a failure."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float,
        max_retries: int,
        backoff_s: float,
        jwt_secret: str,
        subject: str = "webhook-ingest",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        self._jwt_secret = jwt_secret
        self._subject = subject

    def _headers(self) -> dict[str, str]:
        token = issue_service_token(self._subject, self._jwt_secret)
        return {"Authorization": f"Bearer {token}"}

    def send_update(self, update: TrackingUpdateRequest) -> TrackingUpdateAck:
        if not self.base_url:
            raise IntegrationUnavailableError(
                SERVICE_NAME, "Tracking API base URL is not configured"
            )

        body = update.model_dump(mode="json", exclude_none=True)
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            try:
                timeout = httpx.Timeout(
                    connect=self.timeout_s,
                    read=self.timeout_s,
                    write=self.timeout_s,
                    pool=self.timeout_s,
                )
                with httpx.Client(timeout=timeout) as client:
                    response = client.post(
                        f"{self.base_url}{TRACKING_UPDATE_PATH}",
                        json=body,
                        headers=self._headers(),
                    )

                if response.status_code >= 500:
                    raise IntegrationUnavailableError(
                        SERVICE_NAME,
                        f"Tracking API returned {response.status_code}",
                        status_code=response.status_code,
                    )
                if response.status_code >= 300:
                    raise IntegrationRejectedError(
                        SERVICE_NAME,
                        f"Tracking update failed: {response.text}",
                        status_code=response.status_code,
                    )

                try:
                    return TrackingUpdateAck.model_validate(response.json())
                except (ValueError, ValidationError) as err:
                    raise IntegrationRejectedError(
                        SERVICE_NAME,
                        "Tracking API returned malformed payload",
                        status_code=response.status_code,
                    ) from err
            except httpx.TimeoutException:
                integration_error = IntegrationTimeoutError(SERVICE_NAME)
            except httpx.TransportError as err:
                integration_error = IntegrationUnavailableError(SERVICE_NAME, str(err))
            except IntegrationUnavailableError as err:
                integration_error = err

            if attempt >= self.max_retries:
                raise integration_error

            time.sleep(self.backoff_s * (2**attempt))

        raise IntegrationUnavailableError(SERVICE_NAME, "Tracking API retries exhausted")


def get_tracking_client(
    store: TimelineStore = Depends(get_timeline_store),
) -> TrackingUpdateClient:
    if not settings.tracking_api_base_url.strip():
        return LocalTrackingClient(store)
    return HttpTrackingClient(
        settings.tracking_api_base_url,
        timeout_s=settings.tracking_api_timeout_s,
        max_retries=settings.tracking_api_max_retries,
        backoff_s=settings.tracking_api_backoff_s,
        jwt_secret=settings.jwt_secret,
        subject=settings.service_token_subject,
    )
