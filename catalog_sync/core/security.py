"""
Security helpers: HTTP Basic auth for the admin endpoints and
signature verification for inbound Square webhooks.
"""

import base64
import hashlib
import hmac
import logging
import secrets
from typing import Optional, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from catalog_sync.core.config import Settings, get_settings
from catalog_sync.core.exceptions import WebhookSignatureError

logger = logging.getLogger(__name__)

security = HTTPBasic()

SQUARE_SIGNATURE_HEADER = "x-square-hmacsha256-signature"


def get_current_username(
    credentials: HTTPBasicCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Simple HTTP Basic Auth - checks username/password from settings
    """
    correct_username = settings.BASIC_AUTH_USERNAME
    correct_password = settings.BASIC_AUTH_PASSWORD

    # If no password is set in production, raise an error
    if not correct_password and settings.ENVIRONMENT == "production":
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Basic auth password not configured"
        )

    # In development, allow a default password
    if not correct_password:
        correct_password = "changeme"

    is_correct_username = secrets.compare_digest(
        credentials.username.encode("utf8"),
        correct_username.encode("utf8")
    )
    is_correct_password = secrets.compare_digest(
        credentials.password.encode("utf8"),
        correct_password.encode("utf8")
    )

    if not (is_correct_username and is_correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


class WebhookSignatureVerifier:
    """
    Verifies Square webhook notifications.

    Square signs ``notification_url + raw_body`` with HMAC-SHA256 using the
    subscription's signature key and sends the base64 digest in the
    ``x-square-hmacsha256-signature`` header.
    """

    def __init__(self, signature_key: str, notification_url: str):
        self.signature_key = signature_key
        self.notification_url = notification_url

    def expected_signature(self, body: Union[bytes, str]) -> str:
        if isinstance(body, str):
            body = body.encode("utf-8")
        payload = self.notification_url.encode("utf-8") + body
        digest = hmac.new(self.signature_key.encode("utf-8"), payload, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify(self, body: Union[bytes, str], signature: Optional[str]) -> bool:
        """Return True when ``signature`` matches the body. Never raises."""
        if not signature:
            return False
        if not self.signature_key:
            logger.error("SQUARE_WEBHOOK_SIGNATURE_KEY is not configured; rejecting webhook")
            return False
        expected = self.expected_signature(body)
        return hmac.compare_digest(signature.encode("utf-8"), expected.encode("ascii"))

    def check(self, body: Union[bytes, str], signature: Optional[str]) -> None:
        """Like ``verify`` but raises ``WebhookSignatureError`` on failure."""
        if not signature:
            raise WebhookSignatureError("No signature provided")
        if not self.verify(body, signature):
            raise WebhookSignatureError("Invalid signature")
