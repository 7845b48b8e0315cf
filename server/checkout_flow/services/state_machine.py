from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from checkout_flow.core.logging import get_logger
from checkout_flow.models.session import FailureKind, PaymentSession, SessionStatus

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: dict[SessionStatus, tuple[SessionStatus, ...]] = {
    SessionStatus.IDLE: (SessionStatus.AWAITING_SELECTION, SessionStatus.CANCELLED, SessionStatus.FAILED),
    SessionStatus.AWAITING_SELECTION: (SessionStatus.INITIATING, SessionStatus.CANCELLED, SessionStatus.FAILED),
    SessionStatus.INITIATING: (SessionStatus.METHOD_IN_PROGRESS, SessionStatus.CANCELLED, SessionStatus.FAILED),
    SessionStatus.METHOD_IN_PROGRESS: (
        SessionStatus.VERIFYING,
        SessionStatus.FALLBACK_REQUIRED,
        SessionStatus.CANCELLED,
        SessionStatus.FAILED,
    ),
    SessionStatus.FALLBACK_REQUIRED: (SessionStatus.VERIFYING, SessionStatus.CANCELLED, SessionStatus.FAILED),
    SessionStatus.VERIFYING: (SessionStatus.SUCCEEDED, SessionStatus.FAILED),
    SessionStatus.SUCCEEDED: (),
    SessionStatus.FAILED: (),
    SessionStatus.CANCELLED: (),
}


@dataclass(slots=True)
class TransitionResult:
    succeeded: bool
    reason: str | None = None


def _can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    allowed: Iterable[SessionStatus] | None = ALLOWED_TRANSITIONS.get(current)
    return allowed is not None and target in allowed


def check_transition(session: PaymentSession, target: SessionStatus) -> TransitionResult:
    """Whether ``session`` may move to ``target`` now; the session is not touched."""
    if not _can_transition(session.status, target):
        return TransitionResult(False, f"session transition {session.status.value} → {target.value} not permitted")

    if target in session.history:
        return TransitionResult(False, f"session already passed through {target.value}")

    if (
        session.status is SessionStatus.FALLBACK_REQUIRED
        and target is SessionStatus.VERIFYING
        and not session.fallback_followed
    ):
        return TransitionResult(False, "cannot verify a blocked popup before the fallback link is followed")

    if target is SessionStatus.VERIFYING and not session.transaction_id:
        return TransitionResult(False, "cannot verify before a transaction id exists")

    return TransitionResult(succeeded=True)


def advance_status(
    session: PaymentSession,
    target: SessionStatus,
    *,
    failure_kind: Optional[FailureKind] = None,
    reason: Optional[str] = None,
) -> TransitionResult:
    check = check_transition(session, target)
    if not check.succeeded:
        return check

    previous = session.status
    session.status = target
    session.history.append(target)
    session.updated_at = datetime.now(timezone.utc)
    if failure_kind is not None:
        session.failure_kind = failure_kind
    if reason is not None:
        session.failure_reason = reason

    logger.info(
        "checkout.session.transition",
        session_id=session.session_id,
        transaction_id=session.transaction_id,
        source=previous.value,
        target=target.value,
        failure_kind=failure_kind.value if failure_kind else None,
    )
    return TransitionResult(succeeded=True)
