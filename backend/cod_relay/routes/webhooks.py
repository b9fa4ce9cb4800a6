# /cod_relay/routes/webhooks.py

import structlog
from typing import Any, Awaitable, Callable
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from cod_relay.models.api import WebhookOutcome
from cod_relay.services.cod_service import CodConfirmationService
from cod_relay.services.shopify_service import ShopifyUserError
from cod_relay.utils.alerting import alerting_service
from cod_relay.utils.dependencies import get_cod_service
from cod_relay.utils.metrics import webhook_events_counter
from cod_relay.utils.request_utils import read_json_body, get_remote_address

# MSG91 webhook endpoints. MSG91 retries anything that is not a 2xx, so every
# business outcome (including "nothing to do") is answered with 200 and only
# genuine failures map to 500.

router = APIRouter(
    tags=["Webhooks"]
)

log = structlog.get_logger(__name__)


async def _run_handler(
    endpoint: str,
    request: Request,
    handler: Callable[..., Awaitable[WebhookOutcome]],
) -> JSONResponse:
    payload: Any = await read_json_body(request)
    request_id = payload.get("requestId") if isinstance(payload, dict) else None
    bound_log = log.bind(endpoint=endpoint, request_id=request_id, client_ip=get_remote_address(request))
    bound_log.debug("MSG91 payload", payload=payload)

    try:
        outcome = await handler(payload, is_disconnected=request.is_disconnected)
    except ShopifyUserError as e:
        bound_log.error("Shopify rejected mutation", operation=e.operation, user_errors=e.user_errors)
        await alerting_service.send_critical_alert(
            str(e), {"endpoint": endpoint, "request_id": request_id, "user_errors": e.user_errors}
        )
        outcome = WebhookOutcome.server_error()
    except Exception as e:
        bound_log.exception("Webhook handler failed", error=str(e))
        await alerting_service.send_critical_alert(str(e), {"endpoint": endpoint, "request_id": request_id})
        outcome = WebhookOutcome.server_error()

    webhook_events_counter.labels(endpoint=endpoint, outcome=outcome.outcome).inc()
    if outcome.outcome == "ignored":
        bound_log.info("Webhook ignored", reason=outcome.body.get("ignored"))
    elif outcome.outcome == "success":
        bound_log.info("Webhook processed", **{k: v for k, v in outcome.body.items() if k != "success"})
    return JSONResponse(outcome.body, status_code=outcome.status_code)


@router.post("/outbound")
async def handle_outbound_webhook(
    request: Request,
    service: CodConfirmationService = Depends(get_cod_service)
):
    """Delivery report: tag the order named in the template with MSG91_<requestId>."""
    return await _run_handler("outbound", request, service.handle_delivery_event)


@router.post("/webhook")
async def handle_reply_webhook(
    request: Request,
    service: CodConfirmationService = Depends(get_cod_service)
):
    """Button reply: confirm the COD order carrying MSG91_<requestId> on a YES."""
    return await _run_handler("webhook", request, service.handle_reply_event)
