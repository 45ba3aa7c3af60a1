# services/orders.py
from __future__ import annotations
import logging
import re
import secrets
import time
from decimal import Decimal, InvalidOperation
from typing import Callable

from models.orders_store import OrderStore
from models.outbox_store import OutboxStore
from services.errors import NotFoundError, ProviderError, UpstreamError, ValidationError
from services.metrics import ORDERS_CREATED, PAYMENT_LINK_FAILURES
from services.reconciler import NotificationKind

log = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^\+?[0-9][0-9\s\-]{5,19}$")


def gen_order_id() -> str:
    # e.g. order-1700000000000-3fa9c1d2 ; the suffix keeps same-millisecond orders apart
    return f"order-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def parse_amount(value) -> Decimal:
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError("grossAmount is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("grossAmount must be numeric")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("grossAmount must be greater than zero")
    if amount != amount.to_integral_value():
        raise ValidationError("grossAmount must be a whole amount")
    return amount


def public_order(o: dict) -> dict:
    return {
        "orderId": o["order_id"],
        "paymentStatus": o["payment_status"],
        "paymentUrl": o.get("payment_url"),
    }


class OrderService:
    def __init__(self, *, orders: OrderStore, outbox: OutboxStore, provider, dispatcher=None,
                 send_link_on_create: bool = False,
                 id_factory: Callable[[], str] = gen_order_id):
        self.orders = orders
        self.outbox = outbox
        self.provider = provider
        self.dispatcher = dispatcher
        self.send_link_on_create = send_link_on_create
        self.id_factory = id_factory

    def _validate(self, customer_name, phone_number, email) -> tuple[str, str, str]:
        name = (customer_name or "").strip() if isinstance(customer_name, str) else ""
        phone = (phone_number or "").strip() if isinstance(phone_number, str) else ""
        mail = (email or "").strip() if isinstance(email, str) else ""
        if not name:
            raise ValidationError("customerName is required")
        if len(name) > 128:
            raise ValidationError("customerName is too long")
        if not _PHONE_RE.match(phone):
            raise ValidationError("phoneNumber is not a valid phone number")
        if mail and not _EMAIL_RE.match(mail):
            raise ValidationError("email is not a valid address")
        return name, phone, mail

    def create_order(self, customer_name, phone_number, email, gross_amount) -> dict:
        """
        Persist a pending order, then ask the provider for a payment link.

        The order is written before the provider call, so a provider timeout
        never leaves an order we don't know about. On provider failure the
        order stays pending without a URL and ProviderError carries orderId;
        retry_payment_link() picks it up from there.
        """
        name, phone, mail = self._validate(customer_name, phone_number, email)
        amount = parse_amount(gross_amount)

        order_id = None
        for _ in range(3):
            candidate = self.id_factory()
            if self.orders.insert(order_id=candidate, customer_name=name, phone_number=phone,
                                  email=mail, gross_amount=amount):
                order_id = candidate
                break
            log.warning("Order id collision on %s; regenerating", candidate)
        if order_id is None:
            raise UpstreamError("could not allocate a unique order id")

        ORDERS_CREATED.inc()
        log.info("Order %s created (amount=%s)", order_id, amount)
        url = self._request_link(order_id, amount, name, phone, mail)
        return {"orderId": order_id, "paymentUrl": url}

    def _request_link(self, order_id: str, amount: Decimal, name: str, phone: str, mail: str) -> str:
        try:
            link = self.provider.create_payment_link(
                order_id=order_id, gross_amount=amount, customer_name=name,
                phone_number=phone, email=mail)
        except ProviderError as e:
            PAYMENT_LINK_FAILURES.labels(provider=self.provider.name).inc()
            log.error("Payment link for %s failed: %s", order_id, e)
            e.extra.update({"orderId": order_id, "paymentUrl": None})
            raise

        self.orders.attach_payment_url(order_id, link.payment_url)
        if self.send_link_on_create:
            self._share_link(order_id, phone, name, link.payment_url)
        return link.payment_url

    def _share_link(self, order_id: str, phone: str, name: str, url: str) -> None:
        nid = self.outbox.enqueue(order_id=order_id, kind=NotificationKind.PAYMENT_LINK.value,
                                  destination=phone, customer_name=name, payment_url=url)
        if nid and self.dispatcher is not None:
            self.dispatcher.submit(nid)

    def retry_payment_link(self, order_id: str) -> dict:
        """Idempotent by order id: returns the stored link when there already is one."""
        o = self.orders.get(order_id)
        if o is None:
            raise NotFoundError(f"unknown order {order_id}")
        if o.get("payment_url"):
            return {"orderId": order_id, "paymentUrl": o["payment_url"]}
        if o["payment_status"] != "pending":
            raise ValidationError(f"order {order_id} is {o['payment_status']}; no payment link needed")
        url = self._request_link(order_id, Decimal(o["gross_amount"]), o["customer_name"],
                                 o["phone_number"], o["email"])
        return {"orderId": order_id, "paymentUrl": url}

    def get_status(self, order_id: str) -> dict:
        o = self.orders.get(order_id)
        if o is None:
            raise NotFoundError(f"unknown order {order_id}")
        return public_order(o)
