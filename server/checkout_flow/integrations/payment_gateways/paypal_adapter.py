"""
PayPal Method Adapter

The backend creates the PayPal order and returns its approval URL as the
gateway URL. The approval page opens in a popup and PayPal redirects back
with ``token`` and ``PayerID``.
"""

from urllib.parse import urlencode

from checkout_flow.models.session import PaymentMethodType

from .base import InitiationResult
from .popup_adapter import PopupRedirectAdapter

SDK_SCRIPT_URL = "https://www.paypal.com/sdk/js"


class PayPalAdapter(PopupRedirectAdapter):
    """PayPal popup adapter."""

    required_credentials = ("client_id",)

    def _get_method_type(self) -> PaymentMethodType:
        return PaymentMethodType.PAYPAL

    def script_url(self, initiation: InitiationResult) -> str:
        params = {
            "client-id": self.config.credential("client_id"),
            "currency": self.options.get("currency", self.config.credential("currency", "USD")),
            "intent": "capture",
        }
        return f"{SDK_SCRIPT_URL}?{urlencode(params)}"
