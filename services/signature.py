# services/signature.py
"""
Midtrans notification signature.

Midtrans signs every HTTP notification with
    signature_key = SHA512(order_id + status_code + gross_amount + ServerKey)
as lowercase hex, where the fields are concatenated as raw strings exactly
as they appear in the notification body (gross_amount keeps its "50000.00"
form). Any change to the order or encoding breaks compatibility with the
provider.

Wapisender delivery callbacks carry md5(device_key#api_key#message_id).

Contract:
- comparison uses hmac.compare_digest()
- missing secret or missing field -> reject (fail-closed)
- the secret never appears in logs or exception messages
"""

from __future__ import annotations
import hashlib
import hmac
import logging
from typing import Any, Optional

from services.errors import AuthenticationError

log = logging.getLogger(__name__)


def _field(v: Any) -> str:
    return "" if v is None else str(v)


def compute_signature(order_id: str, status_code: str, gross_amount: str, secret: str) -> str:
    raw = _field(order_id) + _field(status_code) + _field(gross_amount) + _field(secret)
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def is_valid_signature(order_id: Optional[str], status_code: Optional[str],
                       gross_amount: Optional[str], signature: Optional[str], secret: str) -> bool:
    if not secret:
        log.warning("Signing secret not set; rejecting webhook")
        return False
    if not (order_id and status_code and gross_amount and signature):
        return False
    expected = compute_signature(order_id, status_code, gross_amount, secret)
    return hmac.compare_digest(expected.encode("ascii"), str(signature).encode("utf-8"))


def verify_signature(order_id: Optional[str], status_code: Optional[str],
                     gross_amount: Optional[str], signature: Optional[str], secret: str) -> None:
    """Raise AuthenticationError unless the signature matches."""
    if not is_valid_signature(order_id, status_code, gross_amount, signature, secret):
        log.warning("Webhook signature rejected for order_id=%s", order_id)
        raise AuthenticationError("signature verification failed")


def wapisender_hash(device_key: str, api_key: str, message_id: str) -> str:
    # md5 is what Wapisender signs delivery callbacks with
    raw = f"{_field(device_key)}#{_field(api_key)}#{_field(message_id)}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


def verify_wapisender_callback(device_key: Optional[str], message_id: Optional[str],
                               supplied_hash: Optional[str], api_key: str) -> None:
    if not (api_key and device_key and message_id and supplied_hash):
        raise AuthenticationError("delivery callback hash verification failed")
    expected = wapisender_hash(device_key, api_key, message_id)
    if not hmac.compare_digest(expected.encode("ascii"), str(supplied_hash).encode("utf-8")):
        log.warning("Wapisender callback hash rejected for message_id=%s", message_id)
        raise AuthenticationError("delivery callback hash verification failed")
