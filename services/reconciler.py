# services/reconciler.py
"""
Maps a Midtrans transaction_status (+ fraud_status) onto the order
lifecycle. Pure: no I/O, no clock.

    pending -> settlement | failure | expire
    settlement, failure, expire are terminal
"""

from __future__ import annotations
from enum import Enum
from typing import NamedTuple, Optional


class OrderStatus(str, Enum):
    PENDING = "pending"
    SETTLEMENT = "settlement"
    FAILURE = "failure"
    EXPIRE = "expire"


TERMINAL_STATUSES = frozenset({OrderStatus.SETTLEMENT, OrderStatus.FAILURE, OrderStatus.EXPIRE})


class NotificationKind(str, Enum):
    SETTLEMENT = "settlement"
    PENDING = "pending"
    EXPIRE = "expire"
    PAYMENT_LINK = "payment_link"


class Reconciliation(NamedTuple):
    new_status: OrderStatus
    notification: Optional[NotificationKind]
    handled: bool = True


def is_terminal(status) -> bool:
    try:
        return OrderStatus(status) in TERMINAL_STATUSES
    except ValueError:
        return False


def reconcile(current_status, transaction_status: Optional[str], fraud_status: Optional[str] = None,
              notify_on_pending: bool = False) -> Reconciliation:
    current = OrderStatus(current_status)
    if current in TERMINAL_STATUSES:
        return Reconciliation(current, None)

    tx = (transaction_status or "").strip().lower()
    fraud = (fraud_status or "").strip().lower() or None

    if tx == "capture":
        # card payments: only an accepted capture is money in the bank
        if fraud == "accept":
            return Reconciliation(OrderStatus.SETTLEMENT, NotificationKind.SETTLEMENT)
        return Reconciliation(current, None)
    if tx == "settlement":
        return Reconciliation(OrderStatus.SETTLEMENT, NotificationKind.SETTLEMENT)
    if tx == "pending":
        return Reconciliation(OrderStatus.PENDING,
                              NotificationKind.PENDING if notify_on_pending else None)
    if tx == "expire":
        return Reconciliation(OrderStatus.EXPIRE, NotificationKind.EXPIRE)
    if tx in ("cancel", "deny"):
        return Reconciliation(OrderStatus.FAILURE, NotificationKind.EXPIRE)

    return Reconciliation(current, None, handled=False)
