# /cod_relay/services/shopify_service.py

import httpx
import logging
import tenacity
from typing import Optional, List, Dict, Any

from cod_relay.config.settings import settings
from cod_relay.models.domain import ShopifyOrder
from cod_relay.services.correlation import digits_of
from cod_relay.utils.metrics import shopify_requests_counter

logger = logging.getLogger(__name__)


class ShopifyError(Exception):
    """Base class for failures reported by the Shopify Admin API."""


class ShopifyGraphQLError(ShopifyError):
    """The GraphQL response carried a top-level `errors` array."""

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        super().__init__(f"Shopify GraphQL errors: {errors}")


class ShopifyUserError(ShopifyError):
    """A mutation was rejected with field-level `userErrors`."""

    def __init__(self, operation: str, user_errors: List[Dict[str, Any]]):
        self.operation = operation
        self.user_errors = user_errors
        super().__init__(f"Shopify {operation} rejected: {user_errors}")


ORDER_SEARCH_QUERY = """
query FindOrders($query: String!, $first: Int!) {
  orders(first: $first, query: $query, sortKey: CREATED_AT, reverse: true) {
    edges { node { id name tags paymentGatewayNames } }
  }
}
"""

TAGS_ADD_MUTATION = """
mutation AddTags($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    node { id }
    userErrors { field message }
  }
}
"""

METAFIELDS_SET_MUTATION = """
mutation SetMetafields($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id namespace key value }
    userErrors { field message }
  }
}
"""


# Name search is fuzzy ("1592" also hits "#15920"), so several candidates are
# fetched and filtered for the exact order number.
NAME_SEARCH_CANDIDATES = 10


class ShopifyService:
    def __init__(self, store_url: str, access_token: str, api_version: str, timeout: float = 10.0):
        self.store_url = store_url.replace('https://', '').replace('http://', '')
        self.access_token = access_token
        self.api_version = api_version
        self.graphql_url = f"https://{self.store_url}/admin/api/{self.api_version}/graphql.json"
        self.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0)
        )

    # Only a connection that was never established is safe to replay here;
    # timeouts are left to the caller's lookup budget.
    @tenacity.retry(
        retry=tenacity.retry_if_exception_type(httpx.ConnectError),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await func(*args, **kwargs)

    # --- GraphQL transport ---

    async def execute_graphql(self, query: str, variables: Optional[Dict] = None, operation: str = "graphql") -> Dict:
        """Executes a GraphQL document against the Shopify Admin API and returns `data`."""
        headers = {"X-Shopify-Access-Token": self.access_token, "Content-Type": "application/json"}
        payload = {"query": query, "variables": variables or {}}
        try:
            resp = await self.resilient_api_call(self.http_client.post, self.graphql_url, json=payload, headers=headers)
            resp.raise_for_status()
            body = resp.json()
        except Exception:
            shopify_requests_counter.labels(operation=operation, status="error").inc()
            raise

        if body.get("errors"):
            shopify_requests_counter.labels(operation=operation, status="error").inc()
            raise ShopifyGraphQLError(body["errors"])

        shopify_requests_counter.labels(operation=operation, status="success").inc()
        return body.get("data") or {}

    # --- Order Lookups ---

    async def find_orders(self, search: str, limit: int = 1) -> List[ShopifyOrder]:
        """Returns up to `limit` orders matching a Shopify search filter, newest first."""
        data = await self.execute_graphql(
            ORDER_SEARCH_QUERY, {"query": search, "first": limit}, operation="find_order"
        )
        edges = (data.get("orders") or {}).get("edges") or []
        orders = [ShopifyOrder.from_graphql_node(edge.get("node")) for edge in edges]
        orders = [order for order in orders if order is not None]
        if not orders:
            logger.info(f"No Shopify order matched search '{search}'")
        return orders

    async def find_order(self, search: str) -> Optional[ShopifyOrder]:
        """Returns the most recent order matching a Shopify search filter, if any."""
        orders = await self.find_orders(search, limit=1)
        return orders[0] if orders else None

    async def find_order_by_name(self, reference: str) -> Optional[ShopifyOrder]:
        """Returns the newest order whose name carries exactly this order number."""
        wanted = digits_of(reference)
        candidates = await self.find_orders(f"name:{reference}", limit=NAME_SEARCH_CANDIDATES)
        order = next((o for o in candidates if digits_of(o.name) == wanted), None)
        if order is None and candidates:
            logger.info(f"Search for order {reference} only matched {[o.name for o in candidates]}")
        return order

    async def find_order_by_tag(self, tag: str) -> Optional[ShopifyOrder]:
        escaped = tag.replace('\\', '\\\\').replace('"', '\\"')
        return await self.find_order(f'tag:"{escaped}"')

    # --- Order Mutations ---

    async def add_tags(self, order_id: str, tags: List[str]) -> str:
        """Appends tags to an order without touching the existing ones."""
        data = await self.execute_graphql(TAGS_ADD_MUTATION, {"id": order_id, "tags": tags}, operation="tags_add")
        result = data.get("tagsAdd") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyUserError("tagsAdd", user_errors)
        logger.info(f"Added tags {tags} to order {order_id}")
        return (result.get("node") or {}).get("id") or order_id

    async def set_metafield(self, owner_id: str, namespace: str, key: str, value: str,
                            field_type: str = "single_line_text_field") -> Dict:
        """Creates or overwrites a single metafield on a Shopify resource."""
        metafield = {
            "namespace": namespace,
            "key": key,
            "type": field_type,
            "value": value,
            "ownerId": owner_id,
        }
        data = await self.execute_graphql(METAFIELDS_SET_MUTATION, {"metafields": [metafield]}, operation="metafields_set")
        result = data.get("metafieldsSet") or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            raise ShopifyUserError("metafieldsSet", user_errors)
        saved = result.get("metafields") or []
        logger.info(f"Set metafield {namespace}.{key} on {owner_id}")
        return saved[0] if saved else metafield

    async def aclose(self):
        await self.http_client.aclose()


# Globally accessible instance
shopify_service = ShopifyService(
    settings.shop,
    settings.shopify_token,
    settings.shopify_api_version,
    settings.shopify_timeout_seconds
)
