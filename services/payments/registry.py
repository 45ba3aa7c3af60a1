# services/payments/registry.py
from services.settings import Settings
# replace/add real adapters here
from services.payments.dummy_provider import DummyProvider


def get_provider(settings: Settings):
    name = (settings.payment_provider or "midtrans").lower()
    if name == "dummy":
        return DummyProvider()
    if name == "midtrans":
        from services.payments.midtrans import MidtransProvider
        return MidtransProvider(settings)
    raise RuntimeError(f"Unknown PAYMENT_PROVIDER: {name}")
