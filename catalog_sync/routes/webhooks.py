# catalog_sync/routes/webhooks.py
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from catalog_sync.core.enums import ReconcileAction
from catalog_sync.core.exceptions import WebhookSignatureError
from catalog_sync.core.security import SQUARE_SIGNATURE_HEADER, WebhookSignatureVerifier
from catalog_sync.dependencies import get_signature_verifier, get_webhook_processor
from catalog_sync.schemas.webhook import WebhookResponse
from catalog_sync.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


async def verify_square_signature(
    request: Request,
    verifier: WebhookSignatureVerifier = Depends(get_signature_verifier),
) -> bytes:
    """Verify the Square signature and hand back the raw body it covers"""
    body = await request.body()
    try:
        verifier.check(body, request.headers.get(SQUARE_SIGNATURE_HEADER))
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Square webhook: {e}")
        raise HTTPException(status_code=401, detail=str(e))

    return body


@router.post("/webhooks/square", response_model=WebhookResponse)
async def square_webhook(
    body: bytes = Depends(verify_square_signature),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Receive Square catalog and inventory notifications.

    Authenticated deliveries always get a 200, including skipped events, so
    Square does not keep retrying events we have chosen not to act on.
    Anything unexpected is a 500 and Square will redeliver.
    """
    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Square webhook body is not valid JSON")
        return WebhookResponse(action=ReconcileAction.SKIPPED, details="Body is not valid JSON")

    try:
        event, result = await processor.process_payload(payload)
    except Exception as e:
        logger.exception(f"Unexpected error processing Square webhook: {e}")
        raise HTTPException(status_code=500, detail="Internal error processing webhook")

    return WebhookResponse(
        event_id=event.event_id if event else None,
        action=result.action,
        details=result.details,
    )
