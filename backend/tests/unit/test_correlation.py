# backend/tests/unit/test_correlation.py

import pytest
from unittest.mock import AsyncMock

from cod_relay.models.domain import ShopifyOrder
from cod_relay.services.correlation import (
    CorrelationTagResolver,
    OrderNameResolver,
    build_correlation_tag,
    extract_order_reference,
    is_affirmative,
    parse_json_object,
)


class TestCorrelationHelpers:

    def test_build_correlation_tag(self):
        assert build_correlation_tag("abc123") == "MSG91_abc123"
        assert build_correlation_tag(" abc123 ", prefix="WA_") == "WA_abc123"

    def test_parse_json_object_accepts_string_and_dict(self):
        assert parse_json_object('{"payload": "YES"}') == {"payload": "YES"}
        assert parse_json_object({"payload": "YES"}) == {"payload": "YES"}

    @pytest.mark.parametrize("raw", [None, "", "   ", "{not json", "[1, 2]", "\"YES\"", 42])
    def test_parse_json_object_rejects_non_objects(self, raw):
        assert parse_json_object(raw) is None

    def test_extract_order_reference_keeps_digits_only(self):
        assert extract_order_reference({"body_2": {"text": "#V1592"}}) == "1592"
        assert extract_order_reference({"body_2": {"text": "FO1067"}}) == "1067"
        assert extract_order_reference({"body_3": {"text": "#88"}}, field="body_3") == "88"

    def test_extract_order_reference_missing_or_empty(self):
        assert extract_order_reference({}) is None
        assert extract_order_reference({"body_2": {}}) is None
        assert extract_order_reference({"body_2": {"text": "#V"}}) is None

    def test_is_affirmative_is_case_insensitive_exact_match(self):
        assert is_affirmative("YES")
        assert is_affirmative(" yes ")
        assert is_affirmative("Yes")
        assert not is_affirmative("NO")
        assert not is_affirmative("YES please")
        assert not is_affirmative(None)
        assert not is_affirmative(1)


class TestShopifyOrder:

    def test_cash_on_delivery_detection(self):
        assert ShopifyOrder(id="1", paymentGatewayNames=["Cash on Delivery (COD)"]).is_cash_on_delivery
        assert ShopifyOrder(id="1", paymentGatewayNames=["razorpay", "CASH"]).is_cash_on_delivery
        assert not ShopifyOrder(id="1", paymentGatewayNames=["shopify_payments"]).is_cash_on_delivery
        assert not ShopifyOrder(id="1").is_cash_on_delivery

    def test_has_tag_ignores_case_and_whitespace(self):
        order = ShopifyOrder(id="1", tags=["MSG91_abc123", "COD Confirmed "])
        assert order.has_tag("MSG91_abc123")
        assert order.has_tag("cod confirmed")
        assert not order.has_tag("MSG91_other")

    def test_from_graphql_node(self):
        node = {"id": "gid://shopify/Order/1", "name": "#V1592", "tags": None, "paymentGatewayNames": ["Cash"]}
        order = ShopifyOrder.from_graphql_node(node)
        assert order.id == "gid://shopify/Order/1"
        assert order.tags == []
        assert ShopifyOrder.from_graphql_node({}) is None
        assert ShopifyOrder.from_graphql_node(None) is None


class TestResolvers:

    @pytest.mark.asyncio
    async def test_name_resolver_accepts_exact_number(self):
        shopify = AsyncMock()
        shopify.find_order_by_name.return_value = ShopifyOrder(id="1", name="#V1592")
        order = await OrderNameResolver(shopify).resolve("1592")
        assert order.name == "#V1592"
        shopify.find_order_by_name.assert_awaited_once_with("1592")

    @pytest.mark.asyncio
    async def test_name_resolver_rejects_fuzzy_match(self):
        shopify = AsyncMock()
        shopify.find_order_by_name.return_value = ShopifyOrder(id="1", name="#V15920")
        assert await OrderNameResolver(shopify).resolve("1592") is None

    @pytest.mark.asyncio
    async def test_tag_resolver_requires_tag_on_result(self):
        shopify = AsyncMock()
        shopify.find_order_by_tag.return_value = ShopifyOrder(id="1", tags=["MSG91_abc1234"])
        assert await CorrelationTagResolver(shopify).resolve("MSG91_abc123") is None

        shopify.find_order_by_tag.return_value = ShopifyOrder(id="1", tags=["MSG91_abc123"])
        order = await CorrelationTagResolver(shopify).resolve("MSG91_abc123")
        assert order.id == "1"
