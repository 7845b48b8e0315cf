"""
Stripe Method Adapter

Embedded-element flow: mount a card element with the publishable key and
confirm the backend's PaymentIntent with its client secret. A confirmed
intent becomes the proof handed to the verifier.
"""

from typing import Any, Optional

import stripe

from checkout_flow.core.logging import get_logger
from checkout_flow.models.session import PaymentMethodType

from .base import (
    AdapterEvent,
    AdapterState,
    InitiationResult,
    MethodAdapter,
    ProviderDeclined,
    ScriptLoadError,
)

logger = get_logger(__name__)

STRIPE_JS_URL = "https://js.stripe.com/v3/"
CONFIRMED_STATUSES = ("succeeded", "processing")


class StripeAdapter(MethodAdapter):
    """Stripe card-element adapter."""

    transitions = {
        AdapterState.IDLE: (AdapterState.SCRIPT_LOADING,),
        AdapterState.SCRIPT_LOADING: (AdapterState.SCRIPT_READY, AdapterState.FAILED),
        AdapterState.SCRIPT_READY: (AdapterState.ELEMENT_MOUNTED, AdapterState.FAILED),
        AdapterState.ELEMENT_MOUNTED: (AdapterState.CONFIRM_PENDING,),
        AdapterState.CONFIRM_PENDING: (AdapterState.CONFIRMED, AdapterState.DECLINED),
    }
    required_credentials = ("publishable_key",)
    initiation_field = "client_secret"

    def __init__(self, config, host=None, container: str = "#card-element", **options):
        """
        Initialize Stripe adapter.

        Args:
            config: Stripe method config, must carry ``publishable_key``
            host: Browser host able to mount card elements
            container: Selector the card element mounts into
            **options: Additional configuration
        """
        super().__init__(config, host=host, **options)
        self.publishable_key = config.credential("publishable_key")
        self.container = container
        self.element: Any = None

    def _get_method_type(self) -> PaymentMethodType:
        return PaymentMethodType.STRIPE

    async def _drive(self, initiation: InitiationResult) -> AdapterEvent:
        failure = await self._load_script(STRIPE_JS_URL, initiation.transaction_id)
        if failure is not None:
            return failure

        try:
            self.element = await self.host.mount_card_element(self.publishable_key, self.container)
        except Exception as exc:
            logger.warning("stripe.mount_failed", error=str(exc))
            self._set_state(AdapterState.FAILED)
            return AdapterEvent.failed(
                ScriptLoadError(
                    f"card element could not be mounted: {exc}",
                    error_code="element_mount_failed",
                    provider="stripe",
                    transaction_id=initiation.transaction_id,
                )
            )
        self._set_state(AdapterState.ELEMENT_MOUNTED)

        self._set_state(AdapterState.CONFIRM_PENDING)
        try:
            result = await self.host.confirm_card_payment(initiation.client_secret, self.element)
        except stripe.StripeError as exc:
            logger.error("stripe.confirm_error", error=str(exc))
            return self._decline(exc.user_message or str(exc), initiation, error_code=exc.code)
        except Exception as exc:
            logger.error("stripe.confirm_error", error=str(exc))
            return self._decline(f"card confirmation failed: {exc}", initiation, error_code="confirm_error")

        if not isinstance(result, dict):
            return self._decline("card confirmation returned no result", initiation, error_code="confirm_error")

        error = result.get("error")
        if error:
            return self._decline(
                error.get("message") or "Card declined",
                initiation,
                error_code=error.get("code") or error.get("decline_code"),
            )

        intent = stripe.PaymentIntent.construct_from(result.get("paymentIntent") or {}, self.publishable_key)
        status = getattr(intent, "status", None)
        intent_id = getattr(intent, "id", None)
        if status not in CONFIRMED_STATUSES or not intent_id:
            return self._decline(f"payment intent ended in status {status}", initiation, error_code=status)

        self._set_state(AdapterState.CONFIRMED)
        return AdapterEvent.with_proof({"payment_intent_id": intent_id})

    def _decline(
        self,
        message: str,
        initiation: InitiationResult,
        error_code: Optional[str] = None,
    ) -> AdapterEvent:
        self._set_state(AdapterState.DECLINED)
        return AdapterEvent.declined(
            ProviderDeclined(
                message,
                error_code=error_code or "card_declined",
                provider="stripe",
                transaction_id=initiation.transaction_id,
            )
        )
