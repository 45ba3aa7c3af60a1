# tests/utils.py
import hashlib
from decimal import Decimal

SECRET = "SB-Mid-server-test"
WAPI_API_KEY = "wapi-key"
WAPI_DEVICE_KEY = "dev-key"
ORDER_ID = "order-1700000000000"


def sign(order_id, status_code, gross_amount, secret=SECRET):
    # written out by hand so the tests pin the provider's algorithm, not ours
    raw = f"{order_id}{status_code}{gross_amount}{secret}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def notification(order_id=ORDER_ID, transaction_status="settlement", fraud_status=None,
                 status_code="200", gross_amount="50000.00", secret=SECRET, **extra):
    """A Midtrans HTTP notification body, signed."""
    body = {
        "order_id": order_id,
        "transaction_status": transaction_status,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "signature_key": sign(order_id, status_code, gross_amount, secret),
        "payment_type": "credit_card" if transaction_status == "capture" else "bank_transfer",
        "customer_details": {"phone": "081234567890", "first_name": "Budi"},
    }
    if fraud_status is not None:
        body["fraud_status"] = fraud_status
    body.update(extra)
    return body


def make_order(components, order_id=ORDER_ID, amount=50000, status=None, payment_url="https://pay/x"):
    store = components.order_store
    assert store.insert(order_id=order_id, customer_name="Budi", phone_number="081234567890",
                        email="budi@example.com", gross_amount=Decimal(amount))
    if payment_url:
        store.attach_payment_url(order_id, payment_url)
    if status and status != "pending":
        store.transition_status(order_id, "pending", status)
    return store.get(order_id)


def post_webhook(client, body, headers=None):
    return client.post("/webhook", json=body, headers=headers or {})
