import pytest
import requests

from services.errors import NotifyError
from services.notifier import WapisenderNotifier, build_message, format_phone_number
from services.reconciler import NotificationKind
from services.settings import load_settings


class _Resp:
    def __init__(self, status_code=200, js=None, text=""):
        self.status_code = status_code
        self._js = js
        self.text = text or (str(js) if js is not None else "")

    def json(self):
        if self._js is None:
            raise ValueError("no json")
        return self._js


@pytest.fixture()
def wapi():
    return WapisenderNotifier(load_settings({
        "WAPISENDER_API_KEY": "wapi-key", "WAPISENDER_DEVICE_KEY": "dev-key",
        "HTTP_TIMEOUT_SEC": "3",
    }))


class _Calls(list):
    pass


@pytest.fixture()
def http(monkeypatch):
    seen = _Calls()
    seen.resp = _Resp(200, {"status": "ok", "data": {"id": "msg-42"}})

    def fake_post(url, files=None, timeout=None, **kw):
        seen.append({"url": url, "files": files, "timeout": timeout})
        if isinstance(seen.resp, Exception):
            raise seen.resp
        return seen.resp
    monkeypatch.setattr("services.notifier.requests.post", fake_post)
    return seen


def test_settlement_message_single_call_with_credentials(wapi, http):
    receipt = wapi.notify("order-1", "0812-3456-7890", "Budi", NotificationKind.SETTLEMENT)

    assert len(http) == 1
    call = http[0]
    assert call["url"] == "https://wapisender.id/api/v5/message/text"
    assert call["timeout"] == 3.0
    form = {k: v[1] for k, v in call["files"].items()}
    assert form["api_key"] == "wapi-key"
    assert form["device_key"] == "dev-key"
    assert form["destination"] == "6281234567890"
    assert "order-1" in form["message"] and "berhasil" in form["message"]

    assert receipt.message_id == "msg-42"
    assert receipt.destination == "6281234567890"
    assert receipt.kind == "settlement"


def test_non_2xx_raises_with_upstream_body(wapi, http):
    http.resp = _Resp(401, {"status": "error", "message": "invalid api key"})
    with pytest.raises(NotifyError) as ei:
        wapi.notify("order-1", "081234567890", "Budi", NotificationKind.SETTLEMENT)
    assert ei.value.status_code == 401
    assert ei.value.body == {"status": "error", "message": "invalid api key"}
    assert len(http) == 1


def test_non_json_error_body_is_kept_as_text(wapi, http):
    http.resp = _Resp(502, None, text="Bad Gateway")
    with pytest.raises(NotifyError) as ei:
        wapi.notify("order-1", "081234567890", "Budi", "expire")
    assert ei.value.body == "Bad Gateway"


def test_in_band_rejection_raises(wapi, http):
    http.resp = _Resp(200, {"status": "error", "message": "device disconnected"})
    with pytest.raises(NotifyError):
        wapi.notify("order-1", "081234567890", "Budi", "settlement")


@pytest.mark.parametrize("resp", [
    _Resp(200, ["queued"]),
    _Resp(200, "queued"),
    _Resp(200, None, text="<html>OK</html>"),
])
def test_2xx_without_json_object_raises(wapi, http, resp):
    http.resp = resp
    with pytest.raises(NotifyError) as ei:
        wapi.notify("order-1", "081234567890", "Budi", "settlement")
    assert ei.value.status_code == 200
    assert ei.value.body == resp.text


def test_network_error_raises_and_does_not_retry(wapi, http):
    http.resp = requests.ConnectionError("connection refused")
    with pytest.raises(NotifyError):
        wapi.notify("order-1", "081234567890", "Budi", "settlement")
    assert len(http) == 1


def test_missing_credentials_or_phone_make_no_call(http):
    n = WapisenderNotifier(load_settings({"WAPISENDER_API_KEY": "", "WAPISENDER_DEVICE_KEY": ""}))
    with pytest.raises(NotifyError):
        n.notify("order-1", "081234567890", "Budi", "settlement")
    n2 = WapisenderNotifier(load_settings({"WAPISENDER_API_KEY": "a", "WAPISENDER_DEVICE_KEY": "b"}))
    with pytest.raises(NotifyError):
        n2.notify("order-1", "", "Budi", "settlement")
    assert len(http) == 0


@pytest.mark.parametrize("kind, needle", [
    (NotificationKind.SETTLEMENT, "berhasil"),
    (NotificationKind.PENDING, "menunggu"),
    (NotificationKind.EXPIRE, "kedaluwarsa"),
    ("settlement", "berhasil"),
])
def test_messages_per_kind(kind, needle):
    msg = build_message(kind, "order-7", "Sari")
    assert "Sari" in msg and "order-7" in msg and needle in msg


def test_payment_link_message_carries_url():
    msg = build_message(NotificationKind.PAYMENT_LINK, "order-7", "Sari", "https://pay/x")
    assert "https://pay/x" in msg


def test_unknown_kind_and_link_without_url_fall_back_to_generic():
    generic = build_message("refund", "order-7", "Sari")
    assert "order-7" in generic
    assert build_message(NotificationKind.PAYMENT_LINK, "order-7", "Sari") == generic
    # a raw URL in the kind slot is not mistaken for a status
    assert build_message("https://pay/x", "order-7", "Sari") == generic


def test_blank_name_gets_a_greeting():
    assert "Pelanggan" in build_message("settlement", "order-7", "")


@pytest.mark.parametrize("raw, expected", [
    ("081234567890", "6281234567890"),
    ("+62 812-3456-7890", "6281234567890"),
    ("6281234567890", "6281234567890"),
    ("81234567890", "6281234567890"),
    ("", ""),
    ("n/a", ""),
])
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected
