# /cod_relay/services/correlation.py

import re
import json
import logging
from typing import Any, Dict, Optional, Protocol

from cod_relay.models.domain import ShopifyOrder
from cod_relay.services.cod_service_constants import MSG91Values

# Links an MSG91 delivery report to its later button reply. The only shared
# state is the correlation tag written onto the Shopify order itself.

logger = logging.getLogger(__name__)


def build_correlation_tag(request_id: str, prefix: str = "MSG91_") -> str:
    return f"{prefix}{request_id.strip()}"


def parse_json_object(raw: Any) -> Optional[Dict[str, Any]]:
    """
    MSG91 nests JSON documents as strings inside its webhook bodies, though
    some accounts deliver them already decoded. Accepts either form and returns
    a dict, or None when the value is missing, malformed or not an object.
    """
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        return None
    return decoded if isinstance(decoded, dict) else None


def digits_of(value: Optional[str]) -> str:
    return re.sub(r'\D', '', value) if value else ""


def extract_order_reference(content: Dict[str, Any], field: str = "body_2") -> Optional[str]:
    """
    Pulls the order number out of a rendered template, e.g.
    {"body_2": {"text": "#V1592"}} -> "1592".

    Only digits are kept: store prefixes ("#", "V", "FO") vary between shops
    while the numeric part is what Shopify's name search matches on.
    """
    component = content.get(field)
    if isinstance(component, dict):
        text = component.get(MSG91Values.REFERENCE_TEXT_KEY)
    else:
        text = component
    if text is None:
        return None
    reference = digits_of(str(text))
    return reference or None


def is_affirmative(decision: Any) -> bool:
    if not isinstance(decision, str):
        return False
    return decision.strip().upper() == MSG91Values.AFFIRMATIVE_REPLY


class OrderResolver(Protocol):
    """Resolves a correlation key to the Shopify order it refers to."""

    async def resolve(self, key: str) -> Optional[ShopifyOrder]:
        ...


class OrderNameResolver:
    """Outbound correlation: order number from the template -> order."""

    def __init__(self, shopify):
        self.shopify = shopify

    async def resolve(self, key: str) -> Optional[ShopifyOrder]:
        order = await self.shopify.find_order_by_name(key)
        if order is None:
            return None
        # Shopify's name search is fuzzy; "#1592" must not resolve to "#15920".
        if digits_of(order.name) != key:
            logger.warning(f"Search for order {key} returned {order.name}; treating as no match")
            return None
        return order


class CorrelationTagResolver:
    """Inbound correlation: MSG91_<requestId> tag -> order."""

    def __init__(self, shopify):
        self.shopify = shopify

    async def resolve(self, key: str) -> Optional[ShopifyOrder]:
        order = await self.shopify.find_order_by_tag(key)
        if order is not None and not order.has_tag(key):
            logger.warning(f"Order {order.name} returned for tag {key} does not carry it")
            return None
        return order
