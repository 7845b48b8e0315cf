"""
SSLCOMMERZ Method Adapter

Hosted-page gateway: the backend creates the session and returns the
gateway URL, the embed script is loaded, and the gateway page opens in a
popup. SSLCOMMERZ then redirects to the success, fail or cancel callback.
"""

import uuid

from checkout_flow.models.session import PaymentMethodType

from .base import InitiationResult
from .popup_adapter import PopupRedirectAdapter

SANDBOX_SCRIPT_URL = "https://sandbox.sslcommerz.com/embed.min.js"
LIVE_SCRIPT_URL = "https://seamless-epay.sslcommerz.com/embed.min.js"


class SSLCommerzAdapter(PopupRedirectAdapter):
    """SSLCOMMERZ popup adapter."""

    def _get_method_type(self) -> PaymentMethodType:
        return PaymentMethodType.SSLCOMMERZ

    def script_url(self, initiation: InitiationResult) -> str:
        base = LIVE_SCRIPT_URL if self.config.is_live else SANDBOX_SCRIPT_URL
        # cache-busting suffix, the embed script is otherwise served stale
        return f"{base}?{uuid.uuid4().hex[:8]}"
