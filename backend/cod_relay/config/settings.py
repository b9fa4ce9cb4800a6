# /cod_relay/config/settings.py

import sys
from typing import Optional
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Shopify
    shop: str
    shopify_token: str
    shopify_api_version: str = "2026-01"
    shopify_timeout_seconds: float = 10.0

    # MSG91 template contract
    msg91_template_name: str = "cod_order_confirmation_test"
    msg91_delivered_event: str = "delivered"
    order_reference_field: str = "body_2"
    reply_decision_field: str = "payload"

    # Correlation
    correlation_tag_prefix: str = "MSG91_"
    confirmation_tag: str = "COD Confirmed"
    record_request_metafield: bool = False
    metafield_namespace: str = "msg91"

    # Order lookup retry budgets (the store lags behind MSG91 events)
    order_lookup_attempts: int = 6
    order_lookup_delay_seconds: float = 5.0
    reply_lookup_attempts: int = 3
    reply_lookup_delay_seconds: float = 2.0

    # Deployment
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "production"
    request_timeout_seconds: float = 120.0

    # Observability
    alerting_webhook_url: Optional[str] = None
    api_key: Optional[str] = None

    # ---------------- Validators ---------------- #

    @field_validator("shop")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        v = v.strip().replace("https://", "").replace("http://", "").rstrip("/")
        if not v:
            raise ValueError("SHOP must not be empty")
        return v

    @field_validator("order_lookup_attempts", "reply_lookup_attempts")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("lookup attempts must be at least 1")
        return v

    @field_validator("order_lookup_delay_seconds", "reply_lookup_delay_seconds")
    @classmethod
    def non_negative_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("lookup delays cannot be negative")
        return v

    @field_validator("shopify_timeout_seconds", "request_timeout_seconds")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @model_validator(mode="after")
    def request_outlives_lookup(self):
        # Every search and mutation may run to the per-call timeout before the next one starts.
        call = self.shopify_timeout_seconds
        mutations = 2 if self.record_request_metafield else 1
        outbound = (
            self.order_lookup_attempts * call
            + (self.order_lookup_attempts - 1) * self.order_lookup_delay_seconds
            + mutations * call
        )
        reply = (
            self.reply_lookup_attempts * call
            + (self.reply_lookup_attempts - 1) * self.reply_lookup_delay_seconds
            + call
        )
        budget = max(outbound, reply)
        if self.request_timeout_seconds <= budget:
            raise ValueError(
                f"REQUEST_TIMEOUT_SECONDS ({self.request_timeout_seconds}) must exceed "
                f"the worst-case lookup budget ({budget}s)"
            )
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        frozen = True


def validate_environment() -> Settings:
    try:
        return Settings()
    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = validate_environment()
