from checkout_flow.models.session import (
    TERMINAL_STATUSES,
    CheckoutItem,
    FailureKind,
    FallbackLink,
    MethodConfig,
    MethodMode,
    PaymentKind,
    PaymentMethodType,
    PaymentSession,
    SessionConfig,
    SessionStatus,
    VerificationResult,
)

__all__ = [
    "TERMINAL_STATUSES",
    "CheckoutItem",
    "FailureKind",
    "FallbackLink",
    "MethodConfig",
    "MethodMode",
    "PaymentKind",
    "PaymentMethodType",
    "PaymentSession",
    "SessionConfig",
    "SessionStatus",
    "VerificationResult",
]
