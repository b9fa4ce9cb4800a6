# /cod_relay/models/domain.py

import logging
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

# Core models for the Shopify order resources this service reads and tags.
# Only the fields the confirmation flow needs are modelled.

logger = logging.getLogger(__name__)


class ShopifyOrder(BaseModel):
    id: str
    name: str = ""
    tags: List[str] = []
    payment_gateway_names: List[str] = Field(default_factory=list, alias="paymentGatewayNames")

    class Config:
        populate_by_name = True

    @property
    def is_cash_on_delivery(self) -> bool:
        """True when any payment gateway descriptor mentions cash."""
        return any("cash" in (gateway or "").lower() for gateway in self.payment_gateway_names)

    def has_tag(self, tag: str) -> bool:
        # Shopify normalises tag whitespace but keeps case; compare on both.
        wanted = tag.strip().lower()
        return any(t.strip().lower() == wanted for t in self.tags)

    @classmethod
    def from_graphql_node(cls, node: Optional[Dict[str, Any]]) -> Optional["ShopifyOrder"]:
        """
        Builds an order from an `orders.edges[].node` dict.
        Returns None for an empty node or one without an id.
        """
        if not node or not node.get("id"):
            return None
        try:
            return cls.model_validate({
                "id": node["id"],
                "name": node.get("name") or "",
                "tags": node.get("tags") or [],
                "paymentGatewayNames": node.get("paymentGatewayNames") or [],
            })
        except Exception as e:
            logger.warning(f"Could not parse Shopify order node {node.get('id')}: {e}")
            return None
