# tests/unit/core/test_security.py
import pytest

from catalog_sync.core.exceptions import WebhookSignatureError
from catalog_sync.core.security import WebhookSignatureVerifier
from tests.mocks import WEBHOOK_SIGNATURE_KEY, WEBHOOK_URL, sign, webhook_body


def test_signature_matches_square_scheme(verifier):
    body = webhook_body("catalog.version.updated")
    assert verifier.expected_signature(body) == sign(body)
    assert verifier.verify(body, sign(body)) is True


def test_single_altered_byte_fails(verifier):
    body = webhook_body("inventory.count.updated", {"object": {"quantity": "9"}})
    signature = sign(body)
    tampered = bytearray(body)
    tampered[-2] = ord("8") if tampered[-2] != ord("8") else ord("7")

    assert verifier.verify(bytes(tampered), signature) is False
    assert verifier.verify(body, signature) is True


def test_signature_covers_notification_url(verifier):
    body = webhook_body("catalog.version.updated")
    other_url_signature = sign(body, url="https://attacker.example.com/hook")
    assert verifier.verify(body, other_url_signature) is False


def test_missing_signature_fails(verifier):
    body = webhook_body("catalog.version.updated")
    assert verifier.verify(body, None) is False
    assert verifier.verify(body, "") is False


def test_unconfigured_key_rejects_everything():
    verifier = WebhookSignatureVerifier(signature_key="", notification_url=WEBHOOK_URL)
    body = webhook_body("catalog.version.updated")
    assert verifier.verify(body, sign(body, key="")) is False


def test_str_and_bytes_bodies_agree():
    verifier = WebhookSignatureVerifier(WEBHOOK_SIGNATURE_KEY, WEBHOOK_URL)
    body = webhook_body("catalog.version.updated")
    assert verifier.expected_signature(body.decode()) == verifier.expected_signature(body)


def test_check_raises_on_missing_or_bad_signature(verifier):
    body = webhook_body("catalog.version.updated")

    with pytest.raises(WebhookSignatureError, match="No signature provided"):
        verifier.check(body, None)
    with pytest.raises(WebhookSignatureError, match="Invalid signature"):
        verifier.check(body, sign(body, key="wrong"))

    verifier.check(body, sign(body))
