# /cod_relay/main.py

import time
import uvicorn
import asyncio
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cod_relay.config.settings import settings
from cod_relay.models.api import SERVER_ERROR_BODY
from cod_relay.utils.lifecycle import lifespan
from cod_relay.utils.metrics import response_time_histogram
from cod_relay.routes import public, webhooks

app = FastAPI(
    title="COD Confirmation Relay",
    version="1.0.0",
    description="Relays MSG91 WhatsApp delivery and reply webhooks into Shopify COD order tags",
    lifespan=lifespan,
    openapi_url="/openapi.json" if settings.environment == "development" else None,
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url=None,
)

log = structlog.get_logger(__name__)

@app.middleware("http")
async def performance_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response_time_histogram.labels(endpoint=request.url.path).observe(process_time)
    response.headers["X-Process-Time"] = str(process_time)
    return response

@app.middleware("http")
async def timeout_middleware(request: Request, call_next):
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.request_timeout_seconds)
    except asyncio.TimeoutError:
        log.error("request_timeout", path=request.url.path, timeout=settings.request_timeout_seconds)
        return JSONResponse(SERVER_ERROR_BODY, status_code=500)

# --- API Routers ---
app.include_router(public.router)
app.include_router(webhooks.router, prefix="/msg91")

# --- Main Entry Point for Uvicorn (for local development) ---
if __name__ == "__main__":
    uvicorn.run(
        "cod_relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
    )
