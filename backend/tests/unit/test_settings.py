# backend/tests/unit/test_settings.py

import pytest
from pydantic import ValidationError

from cod_relay.config.settings import Settings, validate_environment

REQUIRED = {"shop": "test-shop.myshopify.com", "shopify_token": "shpat_test_token"}


class TestSettings:

    def test_defaults_match_msg91_contract(self):
        s = Settings(**REQUIRED, port=3000, order_lookup_attempts=6, order_lookup_delay_seconds=5)
        assert s.port == 3000
        assert s.correlation_tag_prefix == "MSG91_"
        assert s.confirmation_tag == "COD Confirmed"
        assert s.order_lookup_attempts == 6
        assert s.order_lookup_delay_seconds == 5

    def test_shop_scheme_is_stripped(self):
        s = Settings(shop="https://test-shop.myshopify.com/", shopify_token="t")
        assert s.shop == "test-shop.myshopify.com"

    def test_settings_are_read_only(self):
        s = Settings(**REQUIRED)
        with pytest.raises(ValidationError):
            s.shop = "other.myshopify.com"

    @pytest.mark.parametrize("field, value", [
        ("order_lookup_attempts", 0),
        ("reply_lookup_attempts", -1),
        ("order_lookup_delay_seconds", -5),
        ("shopify_timeout_seconds", 0),
    ])
    def test_invalid_lookup_settings_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**REQUIRED, **{field: value})

    def test_request_timeout_must_outlive_lookup_budget(self):
        with pytest.raises(ValidationError, match="lookup budget"):
            Settings(**REQUIRED, order_lookup_attempts=6, order_lookup_delay_seconds=5, request_timeout_seconds=30)

    def test_lookup_budget_counts_per_call_timeouts(self):
        # 6 searches x 10s + 5 waits x 5s + tagsAdd 10s = 95s
        with pytest.raises(ValidationError, match="lookup budget"):
            Settings(**REQUIRED, order_lookup_attempts=6, order_lookup_delay_seconds=5,
                     shopify_timeout_seconds=10, request_timeout_seconds=95)
        Settings(**REQUIRED, order_lookup_attempts=6, order_lookup_delay_seconds=5,
                 shopify_timeout_seconds=10, request_timeout_seconds=96)

    def test_lookup_budget_includes_metafield_write(self):
        with pytest.raises(ValidationError, match="lookup budget"):
            Settings(**REQUIRED, record_request_metafield=True, request_timeout_seconds=100)

    def test_default_request_timeout_covers_worst_case(self):
        s = Settings(**REQUIRED, record_request_metafield=True)
        assert s.request_timeout_seconds == 120


def test_validate_environment_exits_without_shop(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SHOP", raising=False)

    with pytest.raises(SystemExit) as exc_info:
        validate_environment()
    assert exc_info.value.code == 1
