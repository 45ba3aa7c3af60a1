# services/metrics.py
from __future__ import annotations
import os

os.environ.setdefault("PROMETHEUS_DISABLE_CREATED_SERIES", "1")

from prometheus_client import (  # noqa: E402
    Counter, Histogram, CollectorRegistry,
    generate_latest, CONTENT_TYPE_LATEST,
)

# Use a DEDICATED registry so only our app metrics show up
APP_REGISTRY = CollectorRegistry(auto_describe=True)

# --- Generic HTTP metrics (bind to our registry) ---
REQUEST_COUNT = Counter(
    "http_requests_total", "HTTP requests total",
    ["method", "endpoint", "status"], registry=APP_REGISTRY
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Request latency (seconds)",
    ["endpoint", "method"], registry=APP_REGISTRY,
)

# --- Orders ---
ORDERS_CREATED = Counter("orders_created_total",
                         "Orders created", registry=APP_REGISTRY)
PAYMENT_LINK_FAILURES = Counter(
    "payment_link_failures_total", "Payment link requests that failed", ["provider"], registry=APP_REGISTRY
)

# --- Payments / Webhook ---
WEBHOOK_EVENTS = Counter(
    "payments_webhook_events_total", "Webhook events", ["provider", "event", "outcome"], registry=APP_REGISTRY
)

# --- Notifications ---
NOTIFICATIONS = Counter(
    "notifications_total", "WhatsApp notifications", ["kind", "outcome"], registry=APP_REGISTRY
)


def init_app(app):
    @app.get("/metrics")
    def metrics():
        data = generate_latest(APP_REGISTRY)
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    # --- pre-warm labeled series so dashboards don't say "No data" ---
    ORDERS_CREATED.inc(0)
    for kind in ("settlement", "pending", "expire", "payment_link"):
        for outcome in ("sent", "failed"):
            NOTIFICATIONS.labels(kind=kind, outcome=outcome).inc(0)
    WEBHOOK_EVENTS.labels(
        provider="midtrans", event="settlement", outcome="changed").inc(0)
