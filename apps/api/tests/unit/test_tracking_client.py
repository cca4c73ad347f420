import httpx
import pytest

from fulfillment_api.auth.jwt import decode_jwt
from fulfillment_api.config import settings
from fulfillment_api.integrations.errors import (
    IntegrationRejectedError,
    IntegrationTimeoutError,
    IntegrationUnavailableError,
)
from fulfillment_api.integrations.tracking_client import (
    HttpTrackingClient,
    LocalTrackingClient,
    get_tracking_client,
)
from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.schemas.tracking import TrackingUpdateRequest
from fulfillment_api.services.timeline_store import InMemoryTimelineStore

JWT_SECRET = "x" * 32


class _Response:
    def __init__(self, status_code: int, payload, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _ClientStub:
    def __init__(self, post_sequence):
        self._post_sequence = post_sequence
        self.calls: list[dict] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def post(self, url, json, headers):
        self.calls.append({"url": url, "json": json, "headers": headers})
        value = self._post_sequence.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


def _client(max_retries: int = 2) -> HttpTrackingClient:
    return HttpTrackingClient(
        "http://tracking/",
        timeout_s=0.1,
        max_retries=max_retries,
        backoff_s=0,
        jwt_secret=JWT_SECRET,
    )


def _update() -> TrackingUpdateRequest:
    return TrackingUpdateRequest(order_id="order-1", status="shipped", carrier="UPS")


def _install(monkeypatch, stub: _ClientStub) -> None:
    monkeypatch.setattr(
        "fulfillment_api.integrations.tracking_client.httpx.Client",
        lambda timeout: stub,
    )


def test_http_client_posts_signed_update(monkeypatch):
    stub = _ClientStub([_Response(200, {"order_id": "order-1", "outcome": "applied"})])
    _install(monkeypatch, stub)

    ack = _client().send_update(_update())

    assert ack.outcome == UpdateOutcome.APPLIED
    call = stub.calls[0]
    assert call["url"] == "http://tracking/fulfillment/tracking"
    assert call["json"] == {"order_id": "order-1", "status": "shipped", "carrier": "UPS", "details": {}}
    token = call["headers"]["Authorization"].removeprefix("Bearer ")
    assert decode_jwt(token, JWT_SECRET)["role"] == "SERVICE"


def test_http_client_retries_timeout_then_succeeds(monkeypatch):
    stub = _ClientStub(
        [
            httpx.ReadTimeout("timeout"),
            _Response(200, {"order_id": "order-1", "outcome": "duplicate"}),
        ]
    )
    _install(monkeypatch, stub)

    ack = _client().send_update(_update())

    assert ack.outcome == UpdateOutcome.DUPLICATE
    assert len(stub.calls) == 2


def test_http_client_raises_timeout_after_retries(monkeypatch):
    stub = _ClientStub([httpx.ReadTimeout("t1"), httpx.ReadTimeout("t2")])
    _install(monkeypatch, stub)

    with pytest.raises(IntegrationTimeoutError):
        _client(max_retries=1).send_update(_update())


def test_http_client_retries_5xx_then_raises_unavailable(monkeypatch):
    stub = _ClientStub([_Response(503, {}), _Response(500, {}), _Response(502, {})])
    _install(monkeypatch, stub)

    with pytest.raises(IntegrationUnavailableError) as exc_info:
        _client(max_retries=2).send_update(_update())

    assert exc_info.value.status_code == 502
    assert len(stub.calls) == 3


def test_http_client_maps_4xx_to_rejected_without_retry(monkeypatch):
    stub = _ClientStub([_Response(400, {}, text="bad status")])
    _install(monkeypatch, stub)

    with pytest.raises(IntegrationRejectedError) as exc_info:
        _client().send_update(_update())

    assert exc_info.value.status_code == 400
    assert len(stub.calls) == 1


def test_http_client_rejects_malformed_payload(monkeypatch):
    stub = _ClientStub([_Response(200, ValueError("not json"))])
    _install(monkeypatch, stub)

    with pytest.raises(IntegrationRejectedError, match="malformed"):
        _client().send_update(_update())


def test_http_client_maps_transport_error_to_unavailable(monkeypatch):
    stub = _ClientStub([httpx.ConnectError("refused")])
    _install(monkeypatch, stub)

    with pytest.raises(IntegrationUnavailableError):
        _client(max_retries=0).send_update(_update())


def test_local_client_applies_update_in_process():
    store = InMemoryTimelineStore()

    ack = LocalTrackingClient(store).send_update(_update())

    assert ack.outcome == UpdateOutcome.APPLIED
    assert store.get("order-1").carrier == "UPS"


def test_get_tracking_client_uses_local_client_without_base_url(monkeypatch):
    monkeypatch.setattr(settings, "tracking_api_base_url", "")

    assert isinstance(get_tracking_client(InMemoryTimelineStore()), LocalTrackingClient)


def test_get_tracking_client_uses_http_client_with_base_url(monkeypatch):
    monkeypatch.setattr(settings, "tracking_api_base_url", "http://tracking")

    client = get_tracking_client(InMemoryTimelineStore())

    assert isinstance(client, HttpTrackingClient)
    assert client.base_url == "http://tracking"
