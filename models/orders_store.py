# models/orders_store.py (SQLAlchemy)
from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.base import Database
from models.schema import NotificationOutbox, Order, PaymentEvent
from services.errors import UpstreamError

log = logging.getLogger(__name__)

ORDER_COLUMNS = ("order_id", "customer_name", "phone_number", "email", "gross_amount",
                 "payment_url", "payment_status", "created_at", "updated_at")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row(o: Order) -> dict:
    return {c: getattr(o, c) for c in ORDER_COLUMNS}


class OrderStore:
    """Orders keyed by order_id. Callers only ever see plain dicts."""

    def __init__(self, db: Database):
        self.db = db

    def get(self, order_id: str) -> Optional[dict]:
        if not order_id:
            return None
        try:
            with self.db.session_scope() as s:
                o = s.get(Order, order_id)
                return _row(o) if o else None
        except SQLAlchemyError as e:
            log.error("order lookup failed for %s: %s", order_id, e)
            raise UpstreamError("order store unavailable") from e

    def insert(self, *, order_id: str, customer_name: str, phone_number: str, email: str,
               gross_amount: Decimal) -> bool:
        """Insert a new pending order. False if the order_id is already taken."""
        now = _now()
        try:
            with self.db.session_scope() as s:
                s.add(Order(
                    order_id=order_id, customer_name=customer_name, phone_number=phone_number,
                    email=email or "", gross_amount=gross_amount, payment_url=None,
                    payment_status="pending", created_at=now, updated_at=now,
                ))
                s.flush()
            return True
        except IntegrityError:
            return False
        except SQLAlchemyError as e:
            log.error("order insert failed for %s: %s", order_id, e)
            raise UpstreamError("order store unavailable") from e

    def attach_payment_url(self, order_id: str, payment_url: str) -> bool:
        try:
            with self.db.session_scope() as s:
                res = s.execute(
                    update(Order)
                    .where(Order.order_id == order_id)
                    .values(payment_url=payment_url, updated_at=_now())
                )
                return res.rowcount == 1
        except SQLAlchemyError as e:
            log.error("payment url update failed for %s: %s", order_id, e)
            raise UpstreamError("order store unavailable") from e

    def transition_status(self, order_id: str, expected: str, new_status: str,
                          notification: Optional[dict] = None) -> Tuple[bool, Optional[int]]:
        """
        Compare-and-set on payment_status, optionally writing the outbox row
        for the notification in the same transaction.

        Returns (changed, outbox_id). changed is False when another writer
        moved the order first; the caller re-reads and decides.
        """
        now = _now()
        try:
            with self.db.session_scope() as s:
                res = s.execute(
                    update(Order)
                    .where((Order.order_id == order_id) & (Order.payment_status == expected))
                    .values(payment_status=new_status, updated_at=now)
                )
                if res.rowcount != 1:
                    return False, None
                if not notification:
                    return True, None
                n = NotificationOutbox(
                    order_id=order_id, kind=notification["kind"],
                    destination=notification["destination"],
                    customer_name=notification["customer_name"],
                    payment_url=notification.get("payment_url"),
                    status="pending", attempts=0, created_at=now, updated_at=now,
                )
                s.add(n)
                s.flush()
                return True, n.id
        except SQLAlchemyError as e:
            log.error("status update failed for %s: %s", order_id, e)
            raise UpstreamError("order store unavailable") from e

    def record_webhook_event(self, provider: str, order_id: Optional[str],
                             transaction_status: Optional[str], fraud_status: Optional[str],
                             signature_ok: bool, outcome: str, raw_payload: dict) -> int:
        # the audit trail must never break the acknowledgement path
        raw_text = json.dumps(raw_payload, ensure_ascii=False,
                              separators=(",", ":"), default=str)
        try:
            with self.db.session_scope() as s:
                e = PaymentEvent(
                    provider=provider, order_id=(order_id or None), transaction_status=transaction_status,
                    fraud_status=fraud_status, signature_ok=signature_ok, outcome=outcome,
                    raw=raw_text, received_at=_now(),
                )
                s.add(e)
                s.flush()
                return e.id
        except SQLAlchemyError:
            log.exception("Failed to record webhook event for %s", order_id)
            return 0

    def list_events(self, order_id: str) -> list[dict]:
        with self.db.session_scope() as s:
            rows = s.execute(
                select(PaymentEvent).where(PaymentEvent.order_id ==
                                           order_id).order_by(PaymentEvent.id)
            ).scalars().all()
            return [{c: getattr(r, c) for c in ("id", "provider", "order_id", "transaction_status",
                                                 "fraud_status", "signature_ok", "outcome", "received_at")}
                    for r in rows]
