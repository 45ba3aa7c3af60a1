# controllers/payments.py
from __future__ import annotations
import logging
from flask import Blueprint, request, jsonify, current_app

from services.errors import ValidationError

payments_bp = Blueprint("payments", __name__)
log = logging.getLogger(__name__)


def _components():
    return current_app.extensions["payrelay"]


def _body() -> dict:
    """JSON object or form body; anything else is a validation error."""
    payload = request.get_json(silent=True)
    if payload is None and request.form:
        payload = request.form.to_dict()
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object")
    return payload


# ----- order placement -----

@payments_bp.post("/create-payment-link")
def create_payment_link():
    payload = _body()
    result = _components().orders.create_order(
        customer_name=payload.get("customerName"),
        phone_number=payload.get("phoneNumber"),
        email=payload.get("email"),
        gross_amount=payload.get("grossAmount"),
    )
    return jsonify(result), 201


@payments_bp.post("/orders/<order_id>/payment-link")
def retry_payment_link(order_id: str):
    return jsonify(_components().orders.retry_payment_link(order_id)), 200


@payments_bp.get("/payment-status/<order_id>")
def payment_status(order_id: str):
    return jsonify(_components().orders.get_status(order_id)), 200


# ----- provider webhook (no auth, signature-verified) -----

@payments_bp.post("/webhook")
def webhook():
    """
    Midtrans HTTP notification. Answers 200 for anything handled or
    deliberately ignored, so the provider stops redelivering; errors are
    rendered by the PayRelayError handler in app.py.
    """
    payload = _body()
    outcome = _components().webhook.process(
        payload, header_signature=request.headers.get("X-Callback-Signature"))
    return jsonify({
        "status": "ok",
        "orderId": outcome.order_id,
        "paymentStatus": outcome.payment_status,
        "changed": outcome.changed,
        "notification": outcome.notification,
    }), 200
