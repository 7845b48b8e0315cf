from typing import Any, Dict, List, Optional

from pydantic import Field

from checkout_flow.models.session import (
    MethodConfig,
    MethodMode,
    PaymentKind,
    PaymentMethodType,
)
from checkout_flow.schemas.common import CamelModel


class MethodConfigPayload(CamelModel):
    method: PaymentMethodType
    enabled: bool = False
    mode: MethodMode = MethodMode.TEST
    credentials: Dict[str, str] = Field(default_factory=dict)

    def to_config(self) -> MethodConfig:
        return MethodConfig(
            method=self.method,
            enabled=self.enabled,
            mode=self.mode,
            credentials=dict(self.credentials),
        )


class InitiationRequest(CamelModel):
    user_id: str
    items: List[Dict[str, Any]]
    method: PaymentMethodType
    kind: PaymentKind


class InitiationResponse(CamelModel):
    success: bool
    transaction_id: Optional[str] = None
    gateway_url: Optional[str] = None
    client_secret: Optional[str] = None
    order_id: Optional[str] = None
    message: Optional[str] = None


class VerificationRequest(CamelModel):
    user_id: str
    items: List[Dict[str, Any]]
    method: PaymentMethodType
    transaction_id: str
    proof: Dict[str, str] = Field(default_factory=dict)


class VerificationResponse(CamelModel):
    success: bool
    message: Optional[str] = None
    already_verified: bool = False
