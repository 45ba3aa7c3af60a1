# services/errors.py
"""
Error taxonomy. Each error knows the HTTP status the controllers answer
with; app.py renders them as JSON.
"""

from __future__ import annotations
from typing import Any, Dict, Optional


class PayRelayError(Exception):
    http_status = 500
    code = "internal_error"

    def __init__(self, message: str = "", *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        out = {"error": self.code, "message": self.message}
        out.update(self.extra)
        return out


class ValidationError(PayRelayError):
    http_status = 400
    code = "validation_error"


class AuthenticationError(PayRelayError):
    http_status = 403
    code = "invalid_signature"


class NotFoundError(PayRelayError):
    http_status = 404
    code = "not_found"


class UpstreamError(PayRelayError):
    """Store, provider or notifier unavailable."""
    http_status = 500
    code = "upstream_error"


class ProviderError(UpstreamError):
    http_status = 502
    code = "payment_provider_error"


class UnhandledEventError(PayRelayError):
    # acknowledged so the provider stops redelivering events we ignore
    http_status = 200
    code = "ignored"


class NotifyError(Exception):
    """Messaging channel refused or could not be reached."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
