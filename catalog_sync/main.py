# catalog_sync/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from catalog_sync.core.config import get_settings
from catalog_sync.core.logging_config import configure_logging
from catalog_sync.core.security import WebhookSignatureVerifier
from catalog_sync.routes import health, sync_conflicts, webhooks
from catalog_sync.scheduler import create_scheduler
from catalog_sync.services.square.client import SquareClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    if not settings.SQUARE_WEBHOOK_SIGNATURE_KEY:
        logger.warning("SQUARE_WEBHOOK_SIGNATURE_KEY is not set; every webhook will be rejected")

    # One Square client and verifier per process, shared by all requests
    app.state.square_client = SquareClient.from_settings(settings)
    app.state.signature_verifier = WebhookSignatureVerifier(
        signature_key=settings.SQUARE_WEBHOOK_SIGNATURE_KEY,
        notification_url=settings.SQUARE_WEBHOOK_NOTIFICATION_URL,
    )

    scheduler = create_scheduler(settings, app.state.square_client)
    if scheduler:
        scheduler.start()
    try:
        yield
    finally:
        if scheduler and scheduler.running:
            scheduler.shutdown(wait=False)
        await app.state.square_client.close()


app = FastAPI(
    title="Catalog Sync",
    lifespan=lifespan
)


# Add middleware to handle HTTPS behind proxy
@app.middleware("http")
async def proxy_headers_middleware(request: Request, call_next):
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto == "https":
        request.scope["scheme"] = "https"
    response = await call_next(request)
    return response


app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(sync_conflicts.router)
