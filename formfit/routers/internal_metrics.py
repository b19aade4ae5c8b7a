from __future__ import annotations

from fastapi import APIRouter, Depends

from formfit.core.metrics import request_metrics
from formfit.deps import require_dashboard_token

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def service_metrics(_auth: None = Depends(require_dashboard_token)):
    return {"endpoints": request_metrics.snapshot(), "events": request_metrics.events()}
