"""
Payment method adapters

One adapter per provider, all driven through the same MethodAdapter
contract and registered with MethodAdapterFactory.
"""

from checkout_flow.models.session import PaymentMethodType

from .base import (
    AdapterEvent,
    AdapterEventKind,
    AdapterState,
    Cancelled,
    CheckoutError,
    DuplicateProof,
    InitiationFailed,
    InitiationResult,
    InvalidTransition,
    MethodAdapter,
    MethodAdapterFactory,
    MethodUnavailable,
    PopupBlocked,
    ProviderDeclined,
    RequestRejected,
    ScriptLoadError,
    SessionInFlight,
    SessionNotFound,
    VerificationFailed,
)
from .cod_adapter import CashOnDeliveryAdapter
from .paypal_adapter import PayPalAdapter
from .popup_adapter import PopupRedirectAdapter
from .razorpay_adapter import RazorpayAdapter
from .sslcommerz_adapter import SSLCommerzAdapter
from .stripe_adapter import StripeAdapter

MethodAdapterFactory.register_adapter(PaymentMethodType.PAYPAL, PayPalAdapter)
MethodAdapterFactory.register_adapter(PaymentMethodType.STRIPE, StripeAdapter)
MethodAdapterFactory.register_adapter(PaymentMethodType.RAZORPAY, RazorpayAdapter)
MethodAdapterFactory.register_adapter(PaymentMethodType.SSLCOMMERZ, SSLCommerzAdapter)
MethodAdapterFactory.register_adapter(PaymentMethodType.COD, CashOnDeliveryAdapter)

__all__ = [
    "AdapterEvent",
    "AdapterEventKind",
    "AdapterState",
    "Cancelled",
    "CashOnDeliveryAdapter",
    "CheckoutError",
    "DuplicateProof",
    "InitiationFailed",
    "InitiationResult",
    "InvalidTransition",
    "MethodAdapter",
    "MethodAdapterFactory",
    "MethodUnavailable",
    "PayPalAdapter",
    "PopupBlocked",
    "PopupRedirectAdapter",
    "ProviderDeclined",
    "RazorpayAdapter",
    "RequestRejected",
    "SSLCommerzAdapter",
    "ScriptLoadError",
    "SessionInFlight",
    "SessionNotFound",
    "StripeAdapter",
    "VerificationFailed",
]
