# /cod_relay/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from cod_relay.utils.logging import setup_logging
from cod_relay.utils.alerting import alerting_service
from cod_relay.services.shopify_service import shopify_service
from cod_relay.config.settings import settings

# This file manages the application's lifespan: logging is configured on
# startup and the shared HTTP clients are closed on shutdown.

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info(
        f"Application starting up. Shop={settings.shop} api_version={settings.shopify_api_version} "
        f"template={settings.msg91_template_name}"
    )

    yield  # Application is now running

    logger.info("Application shutting down...")
    await shopify_service.aclose()
    await alerting_service.cleanup()
