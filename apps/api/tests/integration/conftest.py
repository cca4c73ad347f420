import pytest

from fulfillment_api.config import settings


@pytest.fixture(params=["memory", "db"])
def timeline_backend(request, monkeypatch):
    monkeypatch.setattr(settings, "timeline_store", request.param)
    return request.param


@pytest.fixture
def send_webhook(client, signed_webhook):
    def _send(payload: dict, *, event_id: str | None = None, provider: str = "printify"):
        extra = {"Idempotency-Key": event_id} if event_id else None
        body, headers = signed_webhook(payload, extra_headers=extra)
        return client.post(f"/webhooks/{provider}", content=body, headers=headers)

    return _send


@pytest.fixture
def get_tracking(client):
    def _get(order_id: str):
        return client.get("/fulfillment/tracking", params={"order_id": order_id})

    return _get
