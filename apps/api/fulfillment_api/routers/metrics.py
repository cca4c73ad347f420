from fastapi import APIRouter, Depends

from fulfillment_api.auth.dependencies import AuthContext, require_backoffice
from fulfillment_api.observability import metrics_store
from fulfillment_api.schemas.metrics import MetricsResponse

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", summary="Observability metrics", response_model=MetricsResponse)
def metrics_endpoint(
    _auth: AuthContext = Depends(require_backoffice),
) -> MetricsResponse:
    """Counters and timings for webhook ingestion and tracking appends (OPS/ADMIN only)."""
    return MetricsResponse.from_snapshot(metrics_store.snapshot())
