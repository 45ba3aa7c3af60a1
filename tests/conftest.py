# tests/conftest.py
import os
import pytest
from app import create_app
from services.errors import NotifyError, ProviderError
from services.notifier import DeliveryReceipt
from services.payments.base import PaymentLinkResult
from tests.utils import SECRET, WAPI_API_KEY, WAPI_DEVICE_KEY


@pytest.fixture(scope="session", autouse=True)
def _set_env():
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("AUTO_CREATE_SCHEMA", "1")
    yield


class FakeProvider:
    """Stands in for Midtrans. Flip .fail / .status / .status_error per test."""
    name = "fake"

    def __init__(self):
        self.url = "https://pay/x"
        self.fail = False
        self.calls = []
        self.on_call = None
        self.status = None
        self.status_error = False
        self.status_calls = 0

    def create_payment_link(self, *, order_id, gross_amount, customer_name, phone_number, email):
        self.calls.append({"order_id": order_id, "gross_amount": gross_amount,
                           "customer_name": customer_name, "phone_number": phone_number,
                           "email": email})
        if self.on_call:
            self.on_call(order_id)
        if self.fail:
            raise ProviderError("payment provider unreachable")
        return PaymentLinkResult(order_id=order_id, payment_url=self.url, token="tok")

    def get_transaction_status(self, order_id):
        self.status_calls += 1
        if self.status_error:
            raise ProviderError("status API answered 503")
        return self.status


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def notify(self, order_id, phone_number, customer_name, kind, payment_url=None):
        if self.fail:
            raise NotifyError("messaging provider answered 500",
                              status_code=500, body={"status": "error", "message": "device offline"})
        self.sent.append({"order_id": order_id, "phone_number": phone_number,
                          "customer_name": customer_name, "kind": getattr(kind, "value", kind),
                          "payment_url": payment_url})
        return DeliveryReceipt(destination=phone_number, kind=getattr(kind, "value", kind),
                               message_id=f"msg-{len(self.sent)}", status_code=200)


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def notifier():
    return FakeNotifier()


def _config(**extra):
    cfg = {
        "TESTING": True,
        "DATABASE_URL": "sqlite://",
        "NOTIFY_MODE": "sync",
        "METRICS_ENABLED": False,
        "MIDTRANS_SERVER_KEY": SECRET,
        "MIDTRANS_SIGNATURE_SECRET": "",
        "WAPISENDER_API_KEY": WAPI_API_KEY,
        "WAPISENDER_DEVICE_KEY": WAPI_DEVICE_KEY,
        "NOTIFY_ON_PENDING": False,
        "SEND_LINK_ON_CREATE": False,
    }
    cfg.update(extra)
    return cfg


@pytest.fixture()
def make_app(provider, notifier):
    """Build an app with extra config; each one gets its own in-memory DB."""
    apps = []

    def _make(**extra):
        a = create_app(_config(**extra), provider=provider, notifier=notifier)
        apps.append(a)
        return a

    yield _make
    for a in apps:
        a.extensions["payrelay"].dispatcher.shutdown()
        a.extensions["payrelay"].db.dispose()


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def components(app):
    return app.extensions["payrelay"]
