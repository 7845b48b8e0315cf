from checkout_flow.schemas.backend import (
    InitiationRequest,
    InitiationResponse,
    MethodConfigPayload,
    VerificationRequest,
    VerificationResponse,
)
from checkout_flow.schemas.session import FallbackLinkRead, SessionRead

__all__ = [
    "FallbackLinkRead",
    "InitiationRequest",
    "InitiationResponse",
    "MethodConfigPayload",
    "SessionRead",
    "VerificationRequest",
    "VerificationResponse",
]
