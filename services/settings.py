# services/settings.py
"""
Runtime configuration, collected once in create_app() and handed to each
component at construction.

Lookup order for every key: the explicit overrides mapping (create_app's
test_config), then the process environment, then the default below.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional


def _boolish(v: Any, default: bool) -> bool:
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    app_env: str = "development"
    database_url: str = "sqlite://"
    auto_create_schema: bool = True

    # Midtrans
    payment_provider: str = "midtrans"
    midtrans_server_key: str = ""
    midtrans_client_key: str = ""
    midtrans_is_production: bool = False
    midtrans_signature_secret: str = ""
    midtrans_verify_status: bool = False

    # Wapisender (WhatsApp)
    wapisender_api_key: str = ""
    wapisender_device_key: str = ""
    wapisender_url: str = "https://wapisender.id/api/v5/message/text"
    phone_country_code: str = "62"

    # Notification policy
    notify_on_pending: bool = False
    notify_mode: str = "background"   # background | sync
    notify_max_workers: int = 4
    notify_max_queue: int = 100
    send_link_on_create: bool = False

    http_timeout_sec: float = 5.0
    log_to_stdout: bool = True
    metrics_enabled: bool = True

    @property
    def signing_secret(self) -> str:
        return self.midtrans_signature_secret or self.midtrans_server_key

    def __repr__(self) -> str:
        # keys stay out of logs and tracebacks
        return (f"Settings(app_env={self.app_env!r}, payment_provider={self.payment_provider!r}, "
                f"notify_mode={self.notify_mode!r})")


def load_settings(overrides: Optional[Mapping[str, Any]] = None) -> Settings:
    overrides = overrides or {}

    def _get(key: str, default: Any = None) -> Any:
        if key in overrides:
            return overrides[key]
        v = os.getenv(key)
        return v if v is not None else default

    d = Settings()
    s = Settings(
        app_env=str(_get("APP_ENV", d.app_env)).lower(),
        database_url=_get("DATABASE_URL", d.database_url),
        auto_create_schema=_boolish(_get("AUTO_CREATE_SCHEMA"), d.auto_create_schema),
        payment_provider=str(_get("PAYMENT_PROVIDER", d.payment_provider)).lower(),
        midtrans_server_key=_get("MIDTRANS_SERVER_KEY", ""),
        midtrans_client_key=_get("MIDTRANS_CLIENT_KEY", ""),
        midtrans_is_production=_boolish(_get("MIDTRANS_IS_PRODUCTION"), False),
        midtrans_signature_secret=_get("MIDTRANS_SIGNATURE_SECRET", ""),
        midtrans_verify_status=_boolish(_get("MIDTRANS_VERIFY_STATUS"), False),
        wapisender_api_key=_get("WAPISENDER_API_KEY", ""),
        wapisender_device_key=_get("WAPISENDER_DEVICE_KEY", ""),
        wapisender_url=_get("WAPISENDER_URL", d.wapisender_url),
        phone_country_code=str(_get("PHONE_COUNTRY_CODE", d.phone_country_code)),
        notify_on_pending=_boolish(_get("NOTIFY_ON_PENDING"), False),
        notify_mode=str(_get("NOTIFY_MODE", d.notify_mode)).lower(),
        notify_max_workers=int(_get("NOTIFY_MAX_WORKERS", d.notify_max_workers)),
        notify_max_queue=int(_get("NOTIFY_MAX_QUEUE", d.notify_max_queue)),
        send_link_on_create=_boolish(_get("SEND_LINK_ON_CREATE"), False),
        http_timeout_sec=float(_get("HTTP_TIMEOUT_SEC", d.http_timeout_sec)),
        log_to_stdout=_boolish(_get("LOG_TO_STDOUT"), True),
        metrics_enabled=_boolish(_get("METRICS_ENABLED"), True),
    )

    if s.notify_mode not in ("background", "sync"):
        raise RuntimeError(f"Unknown NOTIFY_MODE: {s.notify_mode}")
    if s.app_env == "production" and not s.signing_secret:
        raise RuntimeError(
            "MIDTRANS_SERVER_KEY (or MIDTRANS_SIGNATURE_SECRET) must be set in production (.env)")
    return s
