import pytest

from services.settings import load_settings


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_readyz(client):
    r = client.get("/readyz")
    assert r.status_code == 200
    assert r.get_json()["status"] == "ok"


def test_unknown_route_is_json_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.get_json()["error"] == "not_found"


def test_wrong_method_is_json_405(client):
    r = client.get("/webhook")
    assert r.status_code == 405
    assert r.is_json


def test_metrics_endpoint(make_app):
    app = make_app(METRICS_ENABLED=True)
    c = app.test_client()
    c.get("/healthz")
    r = c.get("/metrics")
    assert r.status_code == 200
    body = r.get_data(as_text=True)
    assert "http_requests_total" in body
    assert "notifications_total" in body


def test_metrics_can_be_disabled(client):
    assert client.get("/metrics").status_code == 404


def test_production_requires_a_signing_secret():
    with pytest.raises(RuntimeError):
        load_settings({"APP_ENV": "production", "MIDTRANS_SERVER_KEY": "",
                       "MIDTRANS_SIGNATURE_SECRET": ""})
    s = load_settings({"APP_ENV": "production", "MIDTRANS_SERVER_KEY": "server-key",
                       "MIDTRANS_SIGNATURE_SECRET": ""})
    assert s.signing_secret == "server-key"


def test_signature_secret_overrides_server_key():
    s = load_settings({"MIDTRANS_SERVER_KEY": "server-key", "MIDTRANS_SIGNATURE_SECRET": "other"})
    assert s.signing_secret == "other"


def test_settings_repr_hides_keys():
    s = load_settings({"MIDTRANS_SERVER_KEY": "SB-Mid-server-zzz", "WAPISENDER_API_KEY": "wapi-zzz"})
    assert "zzz" not in repr(s)


def test_unknown_notify_mode_is_refused():
    with pytest.raises(RuntimeError):
        load_settings({"NOTIFY_MODE": "carrier-pigeon"})


def test_boolean_env_values():
    s = load_settings({"NOTIFY_ON_PENDING": "yes", "MIDTRANS_IS_PRODUCTION": "0",
                       "MIDTRANS_SERVER_KEY": "k"})
    assert s.notify_on_pending is True
    assert s.midtrans_is_production is False


def test_env_example_keeps_opt_in_features_off():
    from pathlib import Path
    from dotenv import dotenv_values
    from services.settings import Settings

    values = dotenv_values(Path(__file__).resolve().parents[1] / ".env.example")
    s = load_settings({**values, "MIDTRANS_SERVER_KEY": "k"})
    d = Settings()
    assert s.midtrans_verify_status is d.midtrans_verify_status
    assert s.notify_on_pending is d.notify_on_pending
    assert s.send_link_on_create is d.send_link_on_create
