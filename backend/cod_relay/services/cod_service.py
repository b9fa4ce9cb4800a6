# /cod_relay/services/cod_service.py

import asyncio
import logging
import httpx
import tenacity
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from cod_relay.config.settings import Settings, settings
from cod_relay.models.api import WebhookOutcome
from cod_relay.models.domain import ShopifyOrder
from cod_relay.models.webhooks import DeliveryEvent, ReplyEvent
from cod_relay.services.shopify_service import ShopifyService, shopify_service
from cod_relay.services.cod_service_constants import IgnoreReasons, MSG91Values
from cod_relay.services.correlation import (
    OrderResolver,
    OrderNameResolver,
    CorrelationTagResolver,
    build_correlation_tag,
    extract_order_reference,
    is_affirmative,
    parse_json_object,
)
from cod_relay.utils.alerting import alerting_service
from cod_relay.utils.metrics import order_lookup_attempts_histogram

logger = logging.getLogger(__name__)

DisconnectCheck = Callable[[], Awaitable[bool]]


class ClientDisconnected(Exception):
    """MSG91 hung up while we were still waiting for the order to appear."""


def _last_outcome(retry_state: tenacity.RetryCallState) -> Optional[ShopifyOrder]:
    # Out of attempts: a trailing None means "not found", a trailing timeout is re-raised.
    return retry_state.outcome.result()


class CodConfirmationService:
    """
    Drives the two halves of the COD confirmation flow:

    * delivery report -> find the order named in the template and tag it with
      MSG91_<requestId>;
    * button reply    -> find the order by that tag and, for a YES on a cash
      order, add the confirmation tag.

    Both handlers are read-then-write against Shopify and check for the tag
    they are about to add first, so replays from MSG91 are ignored.
    """

    def __init__(
        self,
        shopify: ShopifyService,
        config: Settings,
        name_resolver: Optional[OrderResolver] = None,
        tag_resolver: Optional[OrderResolver] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.shopify = shopify
        self.config = config
        self.name_resolver = name_resolver or OrderNameResolver(shopify)
        self.tag_resolver = tag_resolver or CorrelationTagResolver(shopify)
        self._sleep = sleep

    # --- Order lookup with bounded retry ---

    async def find_order_with_retry(
        self,
        resolver: OrderResolver,
        key: str,
        attempts: int,
        delay: float,
        flow: str,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> Optional[ShopifyOrder]:
        """
        Polls the resolver until it returns an order, giving up after `attempts`
        tries spaced `delay` seconds apart. Shopify search is eventually
        consistent, so a miss is retried; so is a timed-out call.
        """
        async def attempt() -> Optional[ShopifyOrder]:
            if is_disconnected is not None and await is_disconnected():
                raise ClientDisconnected(key)
            return await resolver.resolve(key)

        retrying = tenacity.AsyncRetrying(
            retry=(
                tenacity.retry_if_result(lambda order: order is None)
                | tenacity.retry_if_exception_type(httpx.TimeoutException)
            ),
            stop=tenacity.stop_after_attempt(attempts),
            wait=tenacity.wait_fixed(delay),
            sleep=self._sleep,
            before_sleep=tenacity.before_sleep_log(logger, logging.INFO),
            retry_error_callback=_last_outcome,
        )
        order = await retrying(attempt)
        order_lookup_attempts_histogram.labels(flow=flow).observe(
            retrying.statistics.get("attempt_number", attempts)
        )
        return order

    # --- Outbound: delivery report ---

    async def handle_delivery_event(
        self, payload: Any, is_disconnected: Optional[DisconnectCheck] = None
    ) -> WebhookOutcome:
        event = self._parse(DeliveryEvent, payload)
        if event is None:
            return WebhookOutcome.ignored(IgnoreReasons.INVALID_BODY)

        if (
            (event.event_name or "").lower() != self.config.msg91_delivered_event.lower()
            or event.template_name != self.config.msg91_template_name
        ):
            return WebhookOutcome.ignored(IgnoreReasons.NOT_COD_DELIVERY)

        if not event.request_id or not event.content:
            return WebhookOutcome.ignored(IgnoreReasons.MISSING_DELIVERY_FIELDS)

        content = parse_json_object(event.content)
        if content is None:
            logger.info(f"Unparseable delivery content for request {event.request_id}")
            return WebhookOutcome.ignored(IgnoreReasons.INVALID_CONTENT)

        reference = extract_order_reference(content, self.config.order_reference_field)
        if not reference:
            return WebhookOutcome.ignored(IgnoreReasons.MISSING_ORDER_REFERENCE)

        try:
            order = await self.find_order_with_retry(
                self.name_resolver,
                reference,
                self.config.order_lookup_attempts,
                self.config.order_lookup_delay_seconds,
                flow="outbound",
                is_disconnected=is_disconnected,
            )
        except ClientDisconnected:
            logger.info(f"Client disconnected while looking up order {reference}")
            return WebhookOutcome.ignored(IgnoreReasons.CLIENT_DISCONNECTED, orderReference=reference)

        if order is None:
            logger.warning(f"No order found for reference {reference} after {self.config.order_lookup_attempts} attempts")
            return WebhookOutcome.ignored(IgnoreReasons.ORDER_NOT_FOUND, orderReference=reference)

        tag = build_correlation_tag(event.request_id, self.config.correlation_tag_prefix)
        if order.has_tag(tag):
            return WebhookOutcome.ignored(IgnoreReasons.ALREADY_TAGGED, orderName=order.name)

        await self.shopify.add_tags(order.id, [tag])
        if self.config.record_request_metafield:
            # The tag is already on the order, so a redelivery stops at "Already tagged".
            try:
                await self.shopify.set_metafield(
                    order.id,
                    self.config.metafield_namespace,
                    MSG91Values.REQUEST_ID_METAFIELD_KEY,
                    event.request_id,
                )
            except Exception as e:
                logger.error(f"Failed to record request {event.request_id} on order {order.name}: {e}", exc_info=True)
                await alerting_service.send_critical_alert(
                    f"Metafield write failed after tagging: {e}",
                    {"order_id": order.id, "order_name": order.name, "request_id": event.request_id},
                )

        logger.info(f"Tagged order {order.name} with {tag}")
        return WebhookOutcome.success(orderName=order.name, tagAdded=tag)

    # --- Inbound: button reply ---

    async def handle_reply_event(
        self, payload: Any, is_disconnected: Optional[DisconnectCheck] = None
    ) -> WebhookOutcome:
        event = self._parse(ReplyEvent, payload)
        if event is None:
            return WebhookOutcome.ignored(IgnoreReasons.INVALID_BODY)

        if (event.content_type or "").lower() != MSG91Values.BUTTON_CONTENT_TYPE:
            return WebhookOutcome.ignored(IgnoreReasons.NOT_BUTTON_REPLY)

        if event.template_name != self.config.msg91_template_name:
            return WebhookOutcome.ignored(IgnoreReasons.WRONG_TEMPLATE)

        button = parse_json_object(event.button)
        if button is None:
            return WebhookOutcome.ignored(IgnoreReasons.INVALID_BUTTON)

        if not is_affirmative(button.get(self.config.reply_decision_field)):
            return WebhookOutcome.ignored(IgnoreReasons.NOT_YES)

        if not event.request_id:
            return WebhookOutcome.ignored(IgnoreReasons.MISSING_REQUEST_ID)

        tag = build_correlation_tag(event.request_id, self.config.correlation_tag_prefix)
        try:
            order = await self.find_order_with_retry(
                self.tag_resolver,
                tag,
                self.config.reply_lookup_attempts,
                self.config.reply_lookup_delay_seconds,
                flow="inbound",
                is_disconnected=is_disconnected,
            )
        except ClientDisconnected:
            logger.info(f"Client disconnected while looking up tag {tag}")
            return WebhookOutcome.ignored(IgnoreReasons.CLIENT_DISCONNECTED)

        if order is None:
            return WebhookOutcome.ignored(IgnoreReasons.ORDER_NOT_FOUND)

        if not order.is_cash_on_delivery:
            logger.warning(f"Order {order.name} matched {tag} but is not COD: {order.payment_gateway_names}")
            return WebhookOutcome.ignored(IgnoreReasons.NOT_COD_ORDER)

        if order.has_tag(self.config.confirmation_tag):
            return WebhookOutcome.ignored(IgnoreReasons.ALREADY_CONFIRMED)

        await self.shopify.add_tags(order.id, [self.config.confirmation_tag])
        logger.info(f"Order {order.name} confirmed via {tag}")
        return WebhookOutcome.success()

    # --- Helpers ---

    @staticmethod
    def _parse(model, payload: Any):
        if not isinstance(payload, dict):
            return None
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            logger.info(f"Rejected {model.__name__} payload: {e.error_count()} validation errors")
            return None


# Globally accessible instance
cod_service = CodConfirmationService(shopify_service, settings)
