# controllers/wapisender.py
from __future__ import annotations
import logging
from flask import Blueprint, request, jsonify, current_app

from services.signature import verify_wapisender_callback

wapisender_bp = Blueprint("wapisender", __name__)
log = logging.getLogger(__name__)


@wapisender_bp.post("/wapisender-webhook")
def delivery_callback():
    """Delivery report for a message we sent. Marks the outbox row delivered."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = request.form.to_dict()

    c = current_app.extensions["payrelay"]
    message_id = payload.get("message_id")
    verify_wapisender_callback(payload.get("device_key"), message_id, payload.get("hash"),
                               c.settings.wapisender_api_key)

    matched = c.outbox.mark_delivered(str(message_id))
    log.info("Wapisender delivery report for message_id=%s (matched=%s)", message_id, matched)
    return jsonify({"status": "ok", "matched": matched}), 200
