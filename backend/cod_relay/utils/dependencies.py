# /cod_relay/utils/dependencies.py

import secrets
import structlog
from fastapi import Request, HTTPException

from cod_relay.config.settings import settings
from cod_relay.services.cod_service import CodConfirmationService, cod_service

log = structlog.get_logger(__name__)


def get_cod_service() -> CodConfirmationService:
    """Provides the process-wide confirmation service; overridden in tests."""
    return cod_service


async def verify_metrics_access(request: Request):
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            log.warning("Rejected metrics scrape with invalid API key.")
            raise HTTPException(status_code=403, detail="Invalid or missing API key")
