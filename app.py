import os
import logging
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from time import time

from flask import Flask, request, current_app, g, jsonify
from dotenv import load_dotenv
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from controllers.payments import payments_bp
from controllers.wapisender import wapisender_bp
from models.base import Database
from models.orders_store import OrderStore
from models.outbox_store import OutboxStore
from services.dispatch import NotificationDispatcher
from services.errors import PayRelayError
from services.metrics import init_app as init_metrics, REQUEST_COUNT, REQUEST_LATENCY
from services.notifier import WapisenderNotifier
from services.orders import OrderService
from services.payments.registry import get_provider
from services.settings import Settings, load_settings
from services.webhook import WebhookProcessor

# --- Load .env exactly once, here ---
# If you run "python app.py", this ensures variables are loaded.
# If you use "flask run", Flask will also load .env automatically (when python-dotenv is installed).
load_dotenv()


@dataclass
class Components:
    """Everything a request needs, built once per app. No module globals."""
    settings: Settings
    db: Database
    order_store: OrderStore
    outbox: OutboxStore
    provider: object
    notifier: object
    dispatcher: NotificationDispatcher
    orders: OrderService
    webhook: WebhookProcessor


def build_components(settings: Settings, *, provider=None, notifier=None) -> Components:
    db = Database(settings.database_url)
    if settings.auto_create_schema:
        db.create_all()

    order_store = OrderStore(db)
    outbox = OutboxStore(db)
    provider = provider or get_provider(settings)
    notifier = notifier or WapisenderNotifier(settings)
    dispatcher = NotificationDispatcher(
        outbox, notifier, mode=settings.notify_mode,
        max_workers=settings.notify_max_workers, max_queue=settings.notify_max_queue)
    orders = OrderService(orders=order_store, outbox=outbox, provider=provider,
                          dispatcher=dispatcher, send_link_on_create=settings.send_link_on_create)
    webhook = WebhookProcessor(orders=order_store, outbox=outbox, provider=provider,
                               dispatcher=dispatcher, signing_secret=settings.signing_secret,
                               notify_on_pending=settings.notify_on_pending)
    return Components(settings, db, order_store, outbox, provider, notifier, dispatcher, orders, webhook)


def _configure_logging(settings: Settings):
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    if settings.log_to_stdout:
        handler = logging.StreamHandler()
    else:
        log_dir = os.path.join(os.path.dirname(__file__), "log")
        try:
            os.makedirs(log_dir, exist_ok=True)
            handler = RotatingFileHandler(
                os.path.join(log_dir, "app.log"),
                maxBytes=5 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
        except OSError:
            # If file logging fails (e.g., in a container), fall back to stdout
            handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    ))

    # avoid duplicate handlers on reload
    root_logger.handlers.clear()
    root_logger.addHandler(handler)


def create_app(test_config: dict | None = None, *, provider=None, notifier=None):
    app = Flask(__name__, instance_relative_config=True)

    # ---- Config from environment (no hardcoded secrets), test_config wins ----
    settings = load_settings(test_config)
    app.config.from_mapping(APP_ENV=settings.app_env, JSON_SORT_KEYS=False)
    if test_config:
        app.config.update(test_config)

    # ---- Logging ----
    _configure_logging(settings)
    app.logger.setLevel(logging.INFO)

    # ---- Components ----
    app.extensions["payrelay"] = build_components(settings, provider=provider, notifier=notifier)
    app.logger.info("payrelay started (env=%s, provider=%s, notify_mode=%s)",
                    settings.app_env, app.extensions["payrelay"].provider.name, settings.notify_mode)

    # ---- Blueprints ----
    app.register_blueprint(payments_bp)
    app.register_blueprint(wapisender_bp)

    # Prometheus
    if settings.metrics_enabled:
        init_metrics(app)

    # ---- Errors ----

    @app.errorhandler(PayRelayError)
    def handle_payrelay_error(e: PayRelayError):
        if e.http_status >= 500:
            app.logger.error("%s %s -> %s: %s", request.method,
                             request.path, e.http_status, e.message, exc_info=e)
        elif e.http_status >= 400:
            app.logger.warning("%s %s -> %s: %s", request.method,
                               request.path, e.http_status, e.message)
        body = e.to_dict()
        if e.http_status < 400:
            body = {"status": e.code, "message": e.message}
        return jsonify(body), e.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        app.logger.warning("%s %s %s", e.code, request.method, request.path)
        return jsonify({"error": (e.name or "error").lower().replace(" ", "_"),
                        "message": e.description}), e.code

    # ---- Routes ----
    @app.before_request
    def _start_timer():
        g._t0 = time()

    @app.after_request
    def _log_request(resp):
        try:
            ms = (time() - getattr(g, "_t0", time())) * 1000
            app.logger.info("%s %s %s %s %.1fms",
                            request.remote_addr, request.method, request.full_path, resp.status_code, ms)

            # --- Skip self-scrapes to keep series clean ---
            ep = request.endpoint or ""
            path = request.path or ""
            if path.startswith("/metrics"):
                return resp

            endpoint = ep.replace(".", "_") or "unknown"
            REQUEST_COUNT.labels(
                method=request.method, endpoint=endpoint, status=str(resp.status_code)).inc()
            REQUEST_LATENCY.labels(
                endpoint=endpoint, method=request.method).observe(ms / 1000.0)
        except Exception:
            app.logger.exception("Failed to log request")
        return resp

    @app.get("/healthz")
    def healthz():
        # Liveness: process is up, Flask can serve a simple request
        return jsonify(status="ok"), 200

    @app.get("/readyz")
    def readyz():
        # Readiness: app can talk to the DB
        try:
            with current_app.extensions["payrelay"].db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return jsonify(status="ok"), 200
        except Exception as e:
            current_app.logger.exception("Readiness check failed")
            return jsonify(status="error", error=str(e)), 500

    return app


if __name__ == "__main__":
    # TIP: use APP_ENV=production MIDTRANS_SERVER_KEY=... when deploying
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3000")), threaded=True, debug=(
        app.config["APP_ENV"] != "production"))
