# services/webhook.py
"""
Midtrans notification handling, independent of Flask.

received -> verified -> reconciled -> persisted -> notified -> acknowledged
Short-circuits raise a PayRelayError subclass (rejected / not_found /
invalid / ignored / error); controllers/payments.py turns those into HTTP.

Every step after verification is safe under exact-duplicate redelivery:
the status write is a compare-and-set out of 'pending' and the outbox row
is unique per (order, kind).
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from models.orders_store import OrderStore
from models.outbox_store import OutboxStore
from services.errors import (
    AuthenticationError, NotFoundError, ProviderError, UnhandledEventError, ValidationError,
)
from services.metrics import WEBHOOK_EVENTS
from services.reconciler import is_terminal, reconcile
from services.signature import verify_signature

log = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    order_id: str
    previous_status: str
    payment_status: str
    changed: bool
    notification: Optional[str] = None
    notification_id: Optional[int] = None
    # where transaction_status came from: "provider" status API or raw "payload"
    source: str = "payload"
    state: str = "acknowledged"


def _str_or_none(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


class WebhookProcessor:
    def __init__(self, *, orders: OrderStore, outbox: OutboxStore, provider, dispatcher,
                 signing_secret: str, notify_on_pending: bool = False):
        self.orders = orders
        self.outbox = outbox
        self.provider = provider
        self.dispatcher = dispatcher
        self._secret = signing_secret
        self.notify_on_pending = notify_on_pending

    def _record(self, payload: Mapping, order_id, tx, fraud, signature_ok: bool, outcome: str) -> None:
        self.orders.record_webhook_event(self.provider.name, order_id, tx, fraud,
                                         signature_ok, outcome, dict(payload))
        WEBHOOK_EVENTS.labels(provider=self.provider.name,
                              event=tx or "unknown", outcome=outcome).inc()

    def _authoritative_status(self, order_id: str, tx: str, fraud: Optional[str]) -> Tuple[str, Optional[str], str]:
        """Prefer the provider's status API; fall back to the payload when it is unavailable."""
        try:
            st = self.provider.get_transaction_status(order_id)
        except ProviderError as e:
            log.warning("Status API unavailable for %s (%s); using webhook payload", order_id, e)
            return tx, fraud, "payload"
        if st is None or not st.transaction_status:
            return tx, fraud, "payload"
        if st.transaction_status != tx:
            log.info("Provider reports %s for %s (webhook said %s)", st.transaction_status, order_id, tx)
        return st.transaction_status, st.fraud_status, "provider"

    def process(self, payload: Mapping[str, Any], header_signature: Optional[str] = None) -> WebhookOutcome:
        if not isinstance(payload, Mapping) or not payload:
            raise ValidationError("webhook body must be a JSON object or form")

        order_id = _str_or_none(payload.get("order_id"))
        tx = _str_or_none(payload.get("transaction_status"))
        fraud = _str_or_none(payload.get("fraud_status"))
        signature = _str_or_none(header_signature) or _str_or_none(payload.get("signature_key"))

        # --- verified
        try:
            verify_signature(order_id, _str_or_none(payload.get("status_code")),
                             _str_or_none(payload.get("gross_amount")), signature, self._secret)
        except AuthenticationError:
            self._record(payload, order_id, tx, fraud, False, "rejected")
            raise

        if not tx:
            self._record(payload, order_id, tx, fraud, True, "invalid")
            raise ValidationError("transaction_status is required")

        order = self.orders.get(order_id)
        if order is None:
            self._record(payload, order_id, tx, fraud, True, "not_found")
            raise NotFoundError(f"unknown order {order_id}")

        # --- reconciled
        previous = order["payment_status"]
        source = "payload"
        if not is_terminal(previous):
            tx, fraud, source = self._authoritative_status(order_id, tx, fraud)
        result = reconcile(previous, tx, fraud, notify_on_pending=self.notify_on_pending)
        if not result.handled:
            self._record(payload, order_id, tx, fraud, True, "ignored")
            log.info("Acknowledged unhandled transaction_status=%s for %s", tx, order_id)
            raise UnhandledEventError(f"transaction_status '{tx}' is not handled")

        new_status = result.new_status.value
        kind = result.notification.value if result.notification else None
        notification = None
        if kind:
            customer = payload.get("customer_details")
            if not isinstance(customer, Mapping):
                customer = {}
            notification = {
                "kind": kind,
                "destination": order["phone_number"] or _str_or_none(customer.get("phone")) or "",
                "customer_name": order["customer_name"] or _str_or_none(customer.get("first_name")) or "",
            }

        # --- persisted
        changed = False
        notification_id = None
        if new_status != previous:
            changed, notification_id = self.orders.transition_status(
                order_id, previous, new_status, notification)
            if not changed:
                # a concurrent delivery moved the order first; it owns the notification
                current = self.orders.get(order_id) or order
                log.info("Order %s already moved to %s by a concurrent delivery",
                         order_id, current["payment_status"])
                self._record(payload, order_id, tx, fraud, True, "duplicate")
                return WebhookOutcome(order_id, previous, current["payment_status"], False,
                                      source=source)
        elif notification:
            # pending -> pending: nothing to write, the outbox dedupes repeats
            notification_id = self.outbox.enqueue(order_id=order_id, **notification)

        if changed:
            log.info("Order %s: %s -> %s (transaction_status=%s, fraud_status=%s, source=%s)",
                     order_id, previous, new_status, tx, fraud, source)

        # --- notified (off the response path in background mode)
        if notification_id:
            try:
                self.dispatcher.submit(notification_id)
            except Exception:
                # status is already committed; the outbox row stays pending for the retry pass
                log.exception("Could not dispatch notification id=%s for %s", notification_id, order_id)

        self._record(payload, order_id, tx, fraud, True,
                     "changed" if changed else ("duplicate" if previous != "pending" else "ok"))
        return WebhookOutcome(
            order_id=order_id, previous_status=previous, payment_status=new_status, changed=changed,
            notification=kind if notification_id else None, notification_id=notification_id,
            source=source,
        )
