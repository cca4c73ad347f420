from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse

from fulfillment_api.auth.dependencies import AuthContext, require_tracking_writer
from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.schemas.tracking import (
    ErrorResponse,
    TrackingResponse,
    TrackingUpdateRequest,
    TrackingUpdateResponse,
)
from fulfillment_api.services.store import get_timeline_store
from fulfillment_api.services.timeline_store import (
    TimelineStore,
    TimelineStoreError,
    TimelineStoreTimeoutError,
)
from fulfillment_api.services.tracking_service import (
    VALID_STATUSES,
    InvalidFulfillmentStatusError,
    build_tracking_etag,
    build_tracking_payload,
    etag_matches,
    get_tracking,
    record_tracking_update,
)

router = APIRouter(prefix="/fulfillment/tracking", tags=["tracking"])

TRACKING_CACHE_CONTROL_VALUE = "no-cache"

TRACKING_RESPONSE_HEADERS = {
    "ETag": {
        "description": "Entity tag representing the current tracking payload",
        "schema": {"type": "string"},
    },
    "Cache-Control": {
        "description": "Caching policy for conditional tracking responses",
        "schema": {"type": "string"},
    },
}

_OUTCOME_MESSAGES = {
    UpdateOutcome.APPLIED: "Order status updated to {status}",
    UpdateOutcome.UNCHANGED: "Order status already {status}",
    UpdateOutcome.DUPLICATE: "Duplicate update ignored",
    UpdateOutcome.REJECTED: "Transition to {status} rejected; status unchanged",
}


def _tracking_view(
    order_id: str,
    response: Response,
    store: TimelineStore,
    if_none_match: str | None,
) -> TrackingResponse | Response:
    try:
        record = get_tracking(store, order_id)
    except TimelineStoreError as err:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tracking store unavailable",
        ) from err

    if record is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "No tracking data available for this order"},
        )

    payload = build_tracking_payload(record)
    etag = build_tracking_etag(payload)
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = TRACKING_CACHE_CONTROL_VALUE

    if etag_matches(if_none_match, etag):
        return Response(
            status_code=status.HTTP_304_NOT_MODIFIED,
            headers={"ETag": etag, "Cache-Control": TRACKING_CACHE_CONTROL_VALUE},
        )

    return TrackingResponse.model_validate(payload)


@router.get(
    "",
    response_model=TrackingResponse,
    summary="Fulfillment tracking for an order",
    responses={
        200: {"headers": TRACKING_RESPONSE_HEADERS},
        304: {"description": "Not Modified", "headers": TRACKING_RESPONSE_HEADERS},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "No tracking record"},
    },
)
def tracking_query_endpoint(
    response: Response,
    order_id: str | None = Query(default=None),
    store: TimelineStore = Depends(get_timeline_store),
    if_none_match: str | None = Header(default=None, alias="If-None-Match"),
) -> TrackingResponse | Response:
    if not order_id or not order_id.strip():
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "order_id is required"},
        )
    return _tracking_view(order_id.strip(), response, store, if_none_match)


@router.get(
    "/{order_id}",
    response_model=TrackingResponse,
    summary="Fulfillment tracking for an order (path form)",
    responses={
        200: {"headers": TRACKING_RESPONSE_HEADERS},
        304: {"description": "Not Modified", "headers": TRACKING_RESPONSE_HEADERS},
        404: {"model": ErrorResponse, "description": "No tracking record"},
    },
)
def tracking_by_path_endpoint(
    order_id: str,
    response: Response,
    store: TimelineStore = Depends(get_timeline_store),
    if_none_match: str | None = Header(default=None, alias="If-None-Match"),
) -> TrackingResponse | Response:
    return _tracking_view(order_id, response, store, if_none_match)


@router.post(
    "",
    response_model=TrackingUpdateResponse,
    summary="Record a fulfillment status update",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid fulfillment status"},
        503: {"description": "Tracking store unavailable; retry"},
    },
)
def tracking_update_endpoint(
    payload: TrackingUpdateRequest,
    store: TimelineStore = Depends(get_timeline_store),
    _auth: AuthContext = Depends(require_tracking_writer),
) -> TrackingUpdateResponse | JSONResponse:
    try:
        result = record_tracking_update(store, payload)
    except InvalidFulfillmentStatusError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid fulfillment status", "valid_statuses": VALID_STATUSES},
        )
    except TimelineStoreTimeoutError as err:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Timed out waiting for order lock",
        ) from err
    except TimelineStoreError as err:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tracking store unavailable",
        ) from err

    tracking = None
    if result.record is not None:
        tracking = TrackingResponse.model_validate(build_tracking_payload(result.record))

    return TrackingUpdateResponse(
        success=True,
        order_id=payload.order_id,
        outcome=result.outcome,
        message=_OUTCOME_MESSAGES[result.outcome].format(status=payload.status),
        tracking=tracking,
    )
