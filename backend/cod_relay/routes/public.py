# /cod_relay/routes/public.py

from datetime import datetime, timezone
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from cod_relay.utils.dependencies import verify_metrics_access

# Public endpoints that need no authentication: the liveness text MSG91's
# dashboard pings and a JSON health check. /metrics is guarded by an API key
# when one is configured.

router = APIRouter()

@router.get("/", response_class=PlainTextResponse)
async def root():
    """Root endpoint."""
    return "COD Confirmation Server Running"

@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Basic health check for load balancers."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc)}

@router.get("/metrics", tags=["Monitoring"])
async def metrics(request: Request, _: bool = Depends(verify_metrics_access)):
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
