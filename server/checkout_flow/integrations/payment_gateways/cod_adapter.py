"""
Cash-on-Delivery Method Adapter

No provider is involved. The adapter completes at once with an empty
proof so the order is confirmed through the same verification call as
every other method.
"""

from checkout_flow.models.session import PaymentMethodType

from .base import AdapterEvent, AdapterState, InitiationResult, MethodAdapter


class CashOnDeliveryAdapter(MethodAdapter):
    transitions = {
        AdapterState.IDLE: (AdapterState.COMPLETED,),
    }
    requires_host = False

    def _get_method_type(self) -> PaymentMethodType:
        return PaymentMethodType.COD

    async def _drive(self, initiation: InitiationResult) -> AdapterEvent:
        self._set_state(AdapterState.COMPLETED)
        return AdapterEvent.with_proof({})
