# services/payments/dummy_provider.py
"""
A development-only provider. No network.

- create_payment_link(...) returns a deterministic local URL so the order
  flow can be exercised without Midtrans credentials.
- get_transaction_status(...) returns None: the webhook payload is the
  only source of truth.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Optional
from urllib.parse import urlencode

from services.payments.base import PaymentLinkResult, TransactionStatus


class DummyProvider:
    name = "dummy"

    def __init__(self, base_url: str = "http://localhost:8000/pay"):
        self.base_url = base_url.rstrip("/")

    def create_payment_link(self, *, order_id: str, gross_amount: Decimal, customer_name: str,
                            phone_number: str, email: str) -> PaymentLinkResult:
        qs = urlencode({"order_id": order_id, "amount": str(gross_amount)})
        return PaymentLinkResult(order_id=order_id, payment_url=f"{self.base_url}?{qs}",
                                 token=f"dummy_{order_id}")

    def get_transaction_status(self, order_id: str) -> Optional[TransactionStatus]:
        return None
