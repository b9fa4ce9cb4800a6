from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from dotenv import load_dotenv
from unittest.mock import AsyncMock

# Load environment variables FIRST, before any app imports, so the module-level
# Settings() instance can find SHOP and SHOPIFY_TOKEN.
load_dotenv(dotenv_path=Path(__file__).resolve().parent.parent / ".env.test")

from cod_relay.main import app  # noqa: E402
from cod_relay.config.settings import Settings  # noqa: E402
from cod_relay.models.domain import ShopifyOrder  # noqa: E402
from cod_relay.services.cod_service import CodConfirmationService  # noqa: E402
from cod_relay.services.shopify_service import ShopifyService  # noqa: E402
from cod_relay.utils.dependencies import get_cod_service  # noqa: E402

TEMPLATE = "cod_order_confirmation_test"


@pytest.fixture
def test_settings():
    """Settings with the production retry budget; sleeping is mocked out."""
    return Settings(
        shop="test-shop.myshopify.com",
        shopify_token="shpat_test_token",
        msg91_template_name=TEMPLATE,
        order_lookup_attempts=6,
        order_lookup_delay_seconds=5,
        reply_lookup_attempts=3,
        reply_lookup_delay_seconds=2,
    )


@pytest.fixture
def fake_shopify():
    """A ShopifyService double whose async methods are AsyncMocks."""
    shopify = AsyncMock(spec=ShopifyService)
    shopify.find_order_by_name.return_value = None
    shopify.find_order_by_tag.return_value = None
    shopify.add_tags.side_effect = lambda order_id, tags: order_id
    return shopify


@pytest.fixture
def fake_sleep():
    return AsyncMock()


@pytest.fixture
def cod_service(fake_shopify, test_settings, fake_sleep):
    return CodConfirmationService(fake_shopify, test_settings, sleep=fake_sleep)


@pytest.fixture
def make_order():
    def _make(order_id="gid://shopify/Order/1", name="#V1592", tags=None, gateways=None):
        return ShopifyOrder(
            id=order_id,
            name=name,
            tags=list(tags or []),
            payment_gateway_names=list(gateways if gateways is not None else ["Cash on Delivery (COD)"]),
        )
    return _make


@pytest.fixture
def delivery_event():
    return {
        "eventName": "delivered",
        "templateName": TEMPLATE,
        "requestId": "abc123",
        "content": "{\"body_2\":{\"text\":\"#V1592\"}}",
    }


@pytest.fixture
def reply_event():
    return {
        "contentType": "button",
        "templateName": TEMPLATE,
        "requestId": "abc123",
        "button": "{\"payload\":\"YES\"}",
    }


@pytest.fixture(scope="function")
def test_client(cod_service):
    """
    Provides a TestClient whose webhook routes use the mocked confirmation
    service instead of the real Shopify-backed one.
    """
    app.dependency_overrides[get_cod_service] = lambda: cod_service
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
