# services/payments/base.py
"""
Abstract interface + result models for payment providers.
Adapters must implement PaymentProvider.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any, Protocol


@dataclass
class PaymentLinkResult:
    order_id: str
    # hosted checkout page the customer is sent to
    payment_url: str
    token: Optional[str] = None


@dataclass
class TransactionStatus:
    order_id: str
    transaction_status: str       # capture | settlement | pending | cancel | deny | expire | ...
    fraud_status: Optional[str]   # accept | challenge | deny | None
    status_code: Optional[str]
    gross_amount: Optional[str]
    raw: Dict[str, Any]


class PaymentProvider(Protocol):
    name: str

    def create_payment_link(self, *, order_id: str, gross_amount: Decimal, customer_name: str,
                            phone_number: str, email: str) -> PaymentLinkResult:
        """
        Create a hosted payment page for order_id.
        Raise ProviderError on transport errors or non-2xx answers.
        """

    def get_transaction_status(self, order_id: str) -> Optional[TransactionStatus]:
        """
        Ask the provider for the authoritative status of order_id.
        Return None when the provider has no status API.
        Raise ProviderError when the call fails.
        """
