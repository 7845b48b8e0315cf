from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class PaymentMethodType(str, Enum):
    """Payment methods the checkout can hand off to."""
    PAYPAL = "PAYPAL"
    STRIPE = "STRIPE"
    RAZORPAY = "RAZORPAY"
    SSLCOMMERZ = "SSLCOMMERZ"
    COD = "COD"


class PaymentKind(str, Enum):
    BOOK = "BOOK"
    SUBSCRIPTION = "SUBSCRIPTION"


class MethodMode(str, Enum):
    TEST = "test"
    LIVE = "live"


class SessionStatus(str, Enum):
    IDLE = "idle"
    AWAITING_SELECTION = "awaiting_selection"
    INITIATING = "initiating"
    METHOD_IN_PROGRESS = "method_in_progress"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    FALLBACK_REQUIRED = "fallback_required"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.SUCCEEDED, SessionStatus.FAILED, SessionStatus.CANCELLED}
)


class FailureKind(str, Enum):
    INITIATION_FAILED = "initiation_failed"
    REQUEST_REJECTED = "request_rejected"
    SCRIPT_LOAD_ERROR = "script_load_error"
    POPUP_BLOCKED = "popup_blocked"
    PROVIDER_DECLINED = "provider_declined"
    VERIFICATION_FAILED = "verification_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MethodConfig:
    """Per-provider settings handed out by the backend at session start.

    ``credentials`` only ever holds public values (publishable key, key id,
    client id, store id).
    """
    method: PaymentMethodType
    enabled: bool = False
    mode: MethodMode = MethodMode.TEST
    credentials: Dict[str, str] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.mode is MethodMode.LIVE

    def credential(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.credentials.get(name, default)


@dataclass(frozen=True)
class SessionConfig:
    """Configuration scoped to one checkout session, passed explicitly."""
    user_id: str
    method_configs: Dict[PaymentMethodType, MethodConfig] = field(default_factory=dict)
    auth_token: Optional[str] = None

    def method_config(self, method: PaymentMethodType) -> Optional[MethodConfig]:
        return self.method_configs.get(method)

    def enabled_methods(self) -> List[PaymentMethodType]:
        return [method for method, config in self.method_configs.items() if config.enabled]


@dataclass(frozen=True)
class CheckoutItem:
    item_id: str
    quantity: int = 1

    def to_payload(self) -> Dict[str, Any]:
        return {"id": self.item_id, "quantity": self.quantity}


@dataclass(frozen=True)
class FallbackLink:
    """Manual-continue link exposed when the provider popup is blocked."""
    transaction_id: str
    url: str


@dataclass(frozen=True)
class VerificationResult:
    transaction_id: str
    success: bool
    failure_reason: Optional[str] = None
    already_verified: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PaymentSession:
    config: SessionConfig
    items: List[CheckoutItem]
    kind: PaymentKind
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    method: Optional[PaymentMethodType] = None
    transaction_id: Optional[str] = None
    status: SessionStatus = SessionStatus.IDLE
    failure_kind: Optional[FailureKind] = None
    failure_reason: Optional[str] = None
    fallback: Optional[FallbackLink] = None
    fallback_followed: bool = False
    popup_closed: bool = False
    verification: Optional[VerificationResult] = None
    history: List[SessionStatus] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.status)

    @property
    def user_id(self) -> str:
        return self.config.user_id

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def item_payload(self) -> List[Dict[str, Any]]:
        return [item.to_payload() for item in self.items]
