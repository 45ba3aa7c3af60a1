# services/payments/midtrans.py
"""
Midtrans adapter.

  create_payment_link   -> Snap API   POST {snap}/snap/v1/transactions
  get_transaction_status -> Core API  GET  {api}/v2/<order_id>/status

Both authenticate with HTTP Basic, username = server key, empty password.
"""

from __future__ import annotations
import base64
import logging
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from services.errors import ProviderError
from services.payments.base import PaymentLinkResult, TransactionStatus
from services.settings import Settings

log = logging.getLogger(__name__)

SNAP_SANDBOX = "https://app.sandbox.midtrans.com"
SNAP_PRODUCTION = "https://app.midtrans.com"
API_SANDBOX = "https://api.sandbox.midtrans.com"
API_PRODUCTION = "https://api.midtrans.com"


def _amount(value: Decimal) -> int:
    # IDR has no minor unit on Midtrans
    return int(Decimal(value).to_integral_value())


class MidtransProvider:
    name = "midtrans"

    def __init__(self, settings: Settings):
        if not settings.midtrans_server_key:
            raise RuntimeError("MIDTRANS_SERVER_KEY not set")
        self._server_key = settings.midtrans_server_key
        self.timeout = settings.http_timeout_sec
        self.verify_status = settings.midtrans_verify_status
        if settings.midtrans_is_production:
            self.snap_url, self.api_url = SNAP_PRODUCTION, API_PRODUCTION
        else:
            self.snap_url, self.api_url = SNAP_SANDBOX, API_SANDBOX

    def _headers(self) -> Dict[str, str]:
        b64 = base64.b64encode(f"{self._server_key}:".encode("utf-8")).decode("ascii")
        return {
            "Authorization": f"Basic {b64}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _build_transaction(self, order_id: str, gross_amount: Decimal, customer_name: str,
                           phone_number: str, email: str) -> Dict[str, Any]:
        customer: Dict[str, Any] = {"first_name": customer_name, "phone": phone_number}
        if email:
            customer["email"] = email
        return {
            "transaction_details": {"order_id": order_id, "gross_amount": _amount(gross_amount)},
            "customer_details": customer,
        }

    # ----- public ---------------------------------------------------------

    def create_payment_link(self, *, order_id: str, gross_amount: Decimal, customer_name: str,
                            phone_number: str, email: str) -> PaymentLinkResult:
        url = f"{self.snap_url}/snap/v1/transactions"
        body = self._build_transaction(order_id, gross_amount, customer_name, phone_number, email)
        try:
            r = requests.post(url, json=body, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            log.error("Midtrans Snap request failed for %s: %s", order_id, e)
            raise ProviderError("payment provider unreachable") from e

        if r.status_code >= 300:
            log.error("Midtrans Snap refused %s (status=%s): %s", order_id, r.status_code, r.text)
            raise ProviderError(f"payment provider answered {r.status_code}",
                                extra={"upstream": r.text[:500]})
        try:
            js = r.json()
        except ValueError as e:
            raise ProviderError("payment provider returned non-JSON response") from e

        redirect_url = js.get("redirect_url")
        if not redirect_url:
            raise ProviderError("payment provider returned no redirect_url")
        return PaymentLinkResult(order_id=order_id, payment_url=redirect_url, token=js.get("token"))

    def get_transaction_status(self, order_id: str) -> Optional[TransactionStatus]:
        if not self.verify_status:
            return None
        url = f"{self.api_url}/v2/{quote(order_id, safe='')}/status"
        try:
            r = requests.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError("payment provider unreachable") from e
        if r.status_code >= 300:
            raise ProviderError(f"status API answered {r.status_code}",
                                extra={"upstream": r.text[:500]})
        try:
            js = r.json()
        except ValueError as e:
            raise ProviderError("status API returned non-JSON response") from e

        # Core API reports errors in-band with HTTP 200
        if str(js.get("status_code", "")).startswith(("4", "5")) and not js.get("transaction_status"):
            raise ProviderError(f"status API error {js.get('status_code')}",
                                extra={"upstream": js.get("status_message")})
        return TransactionStatus(
            order_id=js.get("order_id") or order_id,
            transaction_status=js.get("transaction_status") or "",
            fraud_status=js.get("fraud_status"),
            status_code=js.get("status_code"),
            gross_amount=js.get("gross_amount"),
            raw=js,
        )
