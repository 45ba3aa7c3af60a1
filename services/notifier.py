# services/notifier.py
"""
WhatsApp notifications through Wapisender.

One notify() call == one POST to the send-text endpoint. No retries here;
the dispatcher records failures in the outbox and the retry script owns
the policy.
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from services.errors import NotifyError
from services.reconciler import NotificationKind
from services.settings import Settings

log = logging.getLogger(__name__)


@dataclass
class DeliveryReceipt:
    destination: str
    kind: str
    message_id: Optional[str]
    status_code: int
    raw: Dict[str, Any] = field(default_factory=dict)


def format_phone_number(phone: str, country_code: str = "62") -> str:
    cleaned = re.sub(r"\D", "", phone or "")
    if not cleaned:
        return ""
    if cleaned.startswith(country_code):
        return cleaned
    if cleaned.startswith("0"):
        return country_code + cleaned[1:]
    return country_code + cleaned


def build_message(kind, order_id: str, customer_name: str, payment_url: Optional[str] = None) -> str:
    name = customer_name or "Pelanggan"
    try:
        kind = NotificationKind(kind)
    except ValueError:
        kind = None

    if kind is NotificationKind.SETTLEMENT:
        return (f"Halo, {name}, pembayaran untuk order {order_id} berhasil. "
                f"Terima kasih atas pembelian Anda.")
    if kind is NotificationKind.PENDING:
        return (f"Halo, {name}, pembayaran untuk order {order_id} sedang menunggu. "
                f"Silakan selesaikan pembayaran Anda.")
    if kind is NotificationKind.EXPIRE:
        return (f"Halo, {name}, pembayaran untuk order {order_id} telah kedaluwarsa atau dibatalkan. "
                f"Silakan buat pesanan baru bila masih ingin melanjutkan.")
    if kind is NotificationKind.PAYMENT_LINK and payment_url:
        return (f"Halo, {name}, silakan selesaikan pembayaran untuk order {order_id} "
                f"melalui tautan berikut: {payment_url}")
    return f"Halo, {name}, ada pembaruan untuk order {order_id}."


class WapisenderNotifier:
    def __init__(self, settings: Settings):
        self.url = settings.wapisender_url
        self._api_key = settings.wapisender_api_key
        self._device_key = settings.wapisender_device_key
        self.country_code = settings.phone_country_code
        self.timeout = settings.http_timeout_sec

    def notify(self, order_id: str, phone_number: str, customer_name: str, kind,
               payment_url: Optional[str] = None) -> DeliveryReceipt:
        destination = format_phone_number(phone_number, self.country_code)
        if not destination:
            raise NotifyError(f"no usable phone number for order {order_id}")
        if not (self._api_key and self._device_key):
            raise NotifyError("WAPISENDER_API_KEY / WAPISENDER_DEVICE_KEY not set")

        message = build_message(kind, order_id, customer_name, payment_url)
        kind_value = getattr(kind, "value", str(kind))
        # multipart form, as the Wapisender docs show
        form = {
            "api_key": (None, self._api_key),
            "device_key": (None, self._device_key),
            "destination": (None, destination),
            "message": (None, message),
        }
        try:
            r = requests.post(self.url, files=form, timeout=self.timeout)
        except requests.RequestException as e:
            log.error("Wapisender request failed for order %s: %s", order_id, e)
            raise NotifyError(f"messaging provider unreachable: {e}") from e

        try:
            js = r.json()
        except ValueError:
            js = None

        if r.status_code < 200 or r.status_code >= 300:
            log.error("Wapisender send failed (status=%s) for order %s: %s",
                      r.status_code, order_id, js or r.text)
            raise NotifyError(f"messaging provider answered {r.status_code}",
                              status_code=r.status_code, body=js or r.text)
        if not isinstance(js, dict):
            log.error("Wapisender returned an unexpected body for order %s: %s", order_id, r.text)
            raise NotifyError("messaging provider returned an unexpected response",
                              status_code=r.status_code, body=r.text)
        if str(js.get("status", "ok")).lower() not in ("ok", "success", "true"):
            log.error("Wapisender rejected message for order %s: %s", order_id, js)
            raise NotifyError("messaging provider rejected message",
                              status_code=r.status_code, body=js)

        data = js.get("data") if isinstance(js.get("data"), dict) else {}
        message_id = data.get("id") or data.get("message_id") or js.get("message_id")
        log.info("WhatsApp %s notification sent for order %s", kind_value, order_id)
        return DeliveryReceipt(destination=destination, kind=kind_value,
                               message_id=str(message_id) if message_id else None,
                               status_code=r.status_code, raw=js)
