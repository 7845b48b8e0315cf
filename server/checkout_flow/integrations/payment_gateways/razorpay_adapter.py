"""
Razorpay Method Adapter

SDK-checkout flow: the backend creates a Razorpay order, the checkout
modal collects payment, and its handler delivers payment id, order id and
signature. That triple is forwarded untouched; the backend checks the
signature.
"""

from typing import Any, Dict

from checkout_flow.core.logging import get_logger
from checkout_flow.models.session import PaymentMethodType

from .base import (
    AdapterEvent,
    AdapterState,
    InitiationResult,
    MethodAdapter,
    ProviderDeclined,
)

logger = get_logger(__name__)

CHECKOUT_SCRIPT_URL = "https://checkout.razorpay.com/v1/checkout.js"

PAYMENT_FAILED = "payment.failed"
MODAL_DISMISSED = "modal.dismissed"


class RazorpayAdapter(MethodAdapter):
    """Razorpay checkout adapter."""

    transitions = {
        AdapterState.IDLE: (AdapterState.SCRIPT_LOADING,),
        AdapterState.SCRIPT_LOADING: (AdapterState.SCRIPT_READY, AdapterState.FAILED),
        AdapterState.SCRIPT_READY: (AdapterState.CHECKOUT_OPEN,),
        AdapterState.CHECKOUT_OPEN: (
            AdapterState.COMPLETED,
            AdapterState.DECLINED,
            AdapterState.DISMISSED,
        ),
    }
    required_credentials = ("key_id",)
    initiation_field = "order_id"

    def _get_method_type(self) -> PaymentMethodType:
        return PaymentMethodType.RAZORPAY

    def checkout_options(self, initiation: InitiationResult) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "key": self.config.credential("key_id"),
            "order_id": initiation.order_id,
            "notes": {"transaction_id": initiation.transaction_id},
        }
        for name in ("name", "description", "image", "prefill", "theme"):
            if name in self.options:
                options[name] = self.options[name]
        return options

    async def _drive(self, initiation: InitiationResult) -> AdapterEvent:
        failure = await self._load_script(CHECKOUT_SCRIPT_URL, initiation.transaction_id)
        if failure is not None:
            return failure

        self._set_state(AdapterState.CHECKOUT_OPEN)
        try:
            response = await self.host.open_checkout(self.checkout_options(initiation))
        except Exception as exc:
            logger.error("razorpay.checkout_error", error=str(exc))
            self._set_state(AdapterState.DECLINED)
            return AdapterEvent.declined(
                ProviderDeclined(
                    f"Razorpay checkout failed: {exc}",
                    error_code="checkout_error",
                    provider="razorpay",
                    transaction_id=initiation.transaction_id,
                )
            )

        if not isinstance(response, dict):
            self._set_state(AdapterState.DECLINED)
            return AdapterEvent.declined(
                ProviderDeclined(
                    "Razorpay checkout returned no response",
                    error_code="checkout_error",
                    provider="razorpay",
                    transaction_id=initiation.transaction_id,
                )
            )

        event = response.get("event")
        if event == MODAL_DISMISSED:
            self._set_state(AdapterState.DISMISSED)
            return AdapterEvent.cancelled("Razorpay checkout dismissed")

        if event == PAYMENT_FAILED:
            error = response.get("error") or {}
            self._set_state(AdapterState.DECLINED)
            return AdapterEvent.declined(
                ProviderDeclined(
                    error.get("description") or "Payment failed",
                    error_code=error.get("code") or "payment_failed",
                    provider="razorpay",
                    transaction_id=initiation.transaction_id,
                    details={"reason": error.get("reason")} if error.get("reason") else None,
                )
            )

        self._set_state(AdapterState.COMPLETED)
        return AdapterEvent.with_proof(
            {
                "payment_id": response.get("razorpay_payment_id", ""),
                "order_id": response.get("razorpay_order_id", ""),
                "signature": response.get("razorpay_signature", ""),
            }
        )
