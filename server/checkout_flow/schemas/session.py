from datetime import datetime
from typing import List, Optional

from checkout_flow.models.session import (
    FailureKind,
    PaymentKind,
    PaymentMethodType,
    PaymentSession,
    SessionStatus,
)
from checkout_flow.schemas.common import CamelModel


class FallbackLinkRead(CamelModel):
    transaction_id: str
    url: str


class SessionRead(CamelModel):
    session_id: str
    user_id: str
    kind: PaymentKind
    method: Optional[PaymentMethodType] = None
    transaction_id: Optional[str] = None
    status: SessionStatus
    terminal: bool
    failure_kind: Optional[FailureKind] = None
    failure_reason: Optional[str] = None
    fallback: Optional[FallbackLinkRead] = None
    fallback_followed: bool = False
    popup_closed: bool = False
    already_verified: bool = False
    history: List[SessionStatus]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: PaymentSession) -> "SessionRead":
        fallback = None
        if session.fallback is not None:
            fallback = FallbackLinkRead(
                transaction_id=session.fallback.transaction_id,
                url=session.fallback.url,
            )
        return cls(
            session_id=session.session_id,
            user_id=session.user_id,
            kind=session.kind,
            method=session.method,
            transaction_id=session.transaction_id,
            status=session.status,
            terminal=session.is_terminal,
            failure_kind=session.failure_kind,
            failure_reason=session.failure_reason,
            fallback=fallback,
            fallback_followed=session.fallback_followed,
            popup_closed=session.popup_closed,
            already_verified=bool(session.verification and session.verification.already_verified),
            history=list(session.history),
            created_at=session.created_at,
            updated_at=session.updated_at,
        )
