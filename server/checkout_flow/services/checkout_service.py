from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Dict, Iterable, Mapping, Optional

from redis.asyncio import Redis

from checkout_flow.core.config import Settings
from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.browser.base import BrowserHost
from checkout_flow.integrations.payment_gateways import (
    AdapterEvent,
    AdapterEventKind,
    CheckoutError,
    InvalidTransition,
    MethodAdapter,
    MethodAdapterFactory,
    PopupRedirectAdapter,
    SessionInFlight,
    SessionNotFound,
    VerificationFailed,
)
from checkout_flow.models.session import (
    CheckoutItem,
    FailureKind,
    FallbackLink,
    PaymentKind,
    PaymentMethodType,
    PaymentSession,
    SessionConfig,
    SessionStatus,
)
from checkout_flow.services.backend_client import BackendClient
from checkout_flow.services.callback_parser import CallbackOutcome, CallbackParams
from checkout_flow.services.initiator import SessionInitiator, ensure_method_enabled
from checkout_flow.services.state_machine import advance_status, check_transition
from checkout_flow.services.verifier import OutcomeVerifier

logger = get_logger(__name__)

MAX_RETAINED_SESSIONS = 1000


class CheckoutService:
    """Coordinates initiator, adapters and verifier for every checkout session.

    Each user has at most one session in flight. Finished sessions are kept
    (up to ``max_retained_sessions``) so that a repeated provider redirect
    gets the outcome it already produced instead of a second one.
    """

    def __init__(
        self,
        initiator: SessionInitiator,
        verifier: OutcomeVerifier,
        adapter_factory: type[MethodAdapterFactory] = MethodAdapterFactory,
        watch_popups: bool = True,
        popup_poll_interval: float = 1.0,
        popup_poll_timeout: float = 900.0,
        max_retained_sessions: int = MAX_RETAINED_SESSIONS,
    ):
        self.initiator = initiator
        self.verifier = verifier
        self.adapter_factory = adapter_factory
        self.watch_popups = watch_popups
        self.popup_poll_interval = popup_poll_interval
        self.popup_poll_timeout = popup_poll_timeout
        self.max_retained_sessions = max_retained_sessions

        self._sessions: "OrderedDict[str, PaymentSession]" = OrderedDict()
        self._active: Dict[str, str] = {}
        self._by_transaction: Dict[str, str] = {}
        self._adapters: Dict[str, MethodAdapter] = {}
        self._watchers: Dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: BackendClient,
        redis_client: Optional[Redis] = None,
    ) -> "CheckoutService":
        return cls(
            initiator=SessionInitiator(backend),
            verifier=OutcomeVerifier(
                backend,
                redis_client=redis_client,
                lock_ttl_seconds=settings.verification_lock_ttl_seconds,
            ),
            popup_poll_interval=settings.popup_poll_interval_seconds,
            popup_poll_timeout=settings.popup_poll_timeout_seconds,
        )

    # Lookups

    def get_session(self, session_id: str) -> PaymentSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"session {session_id} not found", error_code="session_not_found")
        return session

    def session_for_transaction(self, transaction_id: str) -> PaymentSession:
        session_id = self._by_transaction.get(transaction_id)
        if session_id is None:
            raise SessionNotFound(
                f"no session for transaction {transaction_id}",
                error_code="transaction_not_found",
                transaction_id=transaction_id,
            )
        return self.get_session(session_id)

    def active_session(self, user_id: str) -> Optional[PaymentSession]:
        session_id = self._active.get(user_id)
        return self._sessions.get(session_id) if session_id else None

    # User-driven operations

    def start_session(
        self,
        config: SessionConfig,
        items: Iterable[CheckoutItem],
        kind: PaymentKind,
    ) -> PaymentSession:
        """
        Open a checkout for the user in ``config``.

        Raises:
            SessionInFlight: The user already has a session that has not finished
        """
        current = self.active_session(config.user_id)
        if current is not None:
            raise SessionInFlight(
                f"user {config.user_id} already has session {current.session_id} in flight",
                error_code="session_in_flight",
                transaction_id=current.transaction_id,
            )

        session = PaymentSession(config=config, items=list(items), kind=kind)
        self._retain(session)
        self._active[config.user_id] = session.session_id
        self._advance(session, SessionStatus.AWAITING_SELECTION)
        return session

    async def select_method(
        self,
        session_id: str,
        method: PaymentMethodType,
        host: Optional[BrowserHost] = None,
        **adapter_options,
    ) -> PaymentSession:
        """
        Initiate the transaction and hand off to the method's adapter.

        A disabled or unsupported method is refused before anything is sent
        to the backend, and the session stays open for another choice.

        Raises:
            MethodUnavailable: Method cannot be used for this session
            InitiationFailed: Backend unreachable; the session is Failed
            RequestRejected: Backend refused the request; the session is Failed
            InvalidTransition: The session is not waiting for a method
        """
        session = self.get_session(session_id)
        if session.status is not SessionStatus.AWAITING_SELECTION:
            raise InvalidTransition(
                f"session {session_id} is {session.status.value}, not awaiting a method",
                error_code="not_awaiting_selection",
            )

        ensure_method_enabled(session, method)
        adapter = self.adapter_factory.create_adapter(
            session.config.method_config(method), host=host, **adapter_options
        )

        session.method = method
        self._advance(session, SessionStatus.INITIATING)
        try:
            initiation = await self.initiator.initiate(session, method)
        except CheckoutError as exc:
            self._fail(session, exc)
            raise

        session.transaction_id = initiation.transaction_id
        self._by_transaction[initiation.transaction_id] = session.session_id
        self._adapters[session.session_id] = adapter
        self._advance(session, SessionStatus.METHOD_IN_PROGRESS)

        try:
            event = await adapter.run(initiation)
        except CheckoutError as exc:
            self._fail(session, exc)
            raise
        except Exception as exc:
            logger.error(
                "checkout.adapter_error",
                session_id=session.session_id,
                method=method.value,
                error=str(exc),
            )
            self._fail_with(session, FailureKind.PROVIDER_DECLINED, f"{method.value} checkout failed: {exc}")
            raise
        return await self.handle_event(session.session_id, event)

    async def handle_event(self, session_id: str, event: AdapterEvent) -> PaymentSession:
        """Consume the single event an adapter emitted for this session's attempt."""
        session = self.get_session(session_id)
        if session.is_terminal:
            logger.info("checkout.event.ignored", session_id=session_id, kind=event.kind.value)
            return session

        if not event.is_terminal:
            self._watch_popup(session)
        elif event.kind is AdapterEventKind.PROOF:
            await self._verify(session, event.proof)
        elif event.kind is AdapterEventKind.FALLBACK:
            session.fallback = event.fallback
            self._advance(
                session,
                SessionStatus.FALLBACK_REQUIRED,
                failure_kind=FailureKind.POPUP_BLOCKED,
                reason=event.message,
            )
        elif event.kind is AdapterEventKind.CANCELLED:
            self._advance(
                session,
                SessionStatus.CANCELLED,
                failure_kind=FailureKind.CANCELLED,
                reason=event.message,
            )
            self._close(session)
        elif event.kind is AdapterEventKind.DECLINED:
            self._fail_with(session, FailureKind.PROVIDER_DECLINED, event.message)
        else:
            kind = event.error.failure_kind if event.error is not None else None
            self._fail_with(session, kind or FailureKind.PROVIDER_DECLINED, event.message)
        return session

    async def handle_callback(self, params: CallbackParams) -> PaymentSession:
        """
        Apply a provider redirect to the session that owns its transaction.

        A redirect for a session that already finished, or is being
        verified, returns the session unchanged.

        Raises:
            SessionNotFound: No session owns the transaction id
            InvalidTransition: Method mismatch, or a blocked popup whose
                fallback link was never followed
            DuplicateProof: The same proof is being verified elsewhere; the
                session is unchanged and the redirect can be retried
        """
        session = self.session_for_transaction(params.transaction_id)
        if session.method is not params.method:
            raise InvalidTransition(
                f"{params.method.value} callback for a {session.method.value} session",
                error_code="method_mismatch",
                transaction_id=params.transaction_id,
            )
        if session.is_terminal or session.status is SessionStatus.VERIFYING:
            logger.info(
                "checkout.callback.duplicate",
                session_id=session.session_id,
                transaction_id=params.transaction_id,
                status=session.status.value,
            )
            return session

        adapter = self._adapters.get(session.session_id)
        if adapter is not None:
            adapter.on_redirect_received()

        if params.outcome is CallbackOutcome.SUCCESS:
            await self._verify(session, params.proof)
        elif params.outcome is CallbackOutcome.FAIL:
            self._fail_with(
                session,
                FailureKind.PROVIDER_DECLINED,
                params.message or "payment failed at provider",
            )
        else:
            self._advance(
                session,
                SessionStatus.CANCELLED,
                failure_kind=FailureKind.CANCELLED,
                reason=params.message or "payment cancelled at provider",
            )
            self._close(session)
        return session

    def follow_fallback(self, session_id: str) -> FallbackLink:
        """Hand out the manual-continue link of a blocked popup and mark it followed."""
        session = self.get_session(session_id)
        if session.status is not SessionStatus.FALLBACK_REQUIRED or session.fallback is None:
            raise InvalidTransition(
                f"session {session_id} has no fallback link",
                error_code="no_fallback",
                transaction_id=session.transaction_id,
            )
        session.fallback_followed = True
        logger.info("checkout.fallback.followed", session_id=session_id, transaction_id=session.transaction_id)
        return session.fallback

    def mark_popup_closed(self, session_id: str) -> None:
        session = self.get_session(session_id)
        session.popup_closed = True

    def abandon(self, user_id: str) -> Optional[PaymentSession]:
        """
        The user navigated away. The in-flight session is cancelled where
        possible and stops being the user's active session either way.
        """
        session = self.active_session(user_id)
        if session is None:
            return None
        if not session.is_terminal and session.status is not SessionStatus.VERIFYING:
            self._advance(
                session,
                SessionStatus.CANCELLED,
                failure_kind=FailureKind.CANCELLED,
                reason="checkout abandoned",
            )
        self._close(session)
        return session

    async def shutdown(self) -> None:
        watchers = list(self._watchers.values())
        self._watchers.clear()
        for task in watchers:
            task.cancel()
        if watchers:
            await asyncio.gather(*watchers, return_exceptions=True)

    # Internals

    async def _verify(self, session: PaymentSession, proof: Mapping[str, str]) -> None:
        """
        Move the session through Verifying to its outcome.

        The proof is claimed before the session changes state, so a proof
        already in flight elsewhere raises DuplicateProof with the session
        untouched.
        """
        check = check_transition(session, SessionStatus.VERIFYING)
        if not check.succeeded:
            raise InvalidTransition(
                check.reason or "transition not permitted",
                error_code="invalid_transition",
                transaction_id=session.transaction_id,
            )

        try:
            known = await self.verifier.claim(session, proof)
        except VerificationFailed as exc:
            self._fail(session, exc)
            return

        try:
            self._advance(session, SessionStatus.VERIFYING)
        except InvalidTransition:
            if known is None:
                await self.verifier.release(session, proof)
            raise

        if known is not None:
            result = known
        else:
            try:
                result = await self.verifier.submit(session, proof)
            except VerificationFailed as exc:
                self._fail(session, exc)
                return
            except Exception as exc:
                logger.error(
                    "checkout.verification_error",
                    session_id=session.session_id,
                    transaction_id=session.transaction_id,
                    error=str(exc),
                )
                self._fail_with(session, FailureKind.VERIFICATION_FAILED, f"verification failed: {exc}")
                raise

        session.verification = result
        if result.success:
            self._advance(session, SessionStatus.SUCCEEDED)
            self._close(session)
        else:
            self._fail_with(session, FailureKind.VERIFICATION_FAILED, result.failure_reason)

    def _advance(
        self,
        session: PaymentSession,
        target: SessionStatus,
        *,
        failure_kind: Optional[FailureKind] = None,
        reason: Optional[str] = None,
    ) -> None:
        result = advance_status(session, target, failure_kind=failure_kind, reason=reason)
        if not result.succeeded:
            raise InvalidTransition(
                result.reason or "transition not permitted",
                error_code="invalid_transition",
                transaction_id=session.transaction_id,
            )

    def _fail(self, session: PaymentSession, error: CheckoutError) -> None:
        self._fail_with(session, error.failure_kind or FailureKind.INITIATION_FAILED, error.error_message)

    def _fail_with(self, session: PaymentSession, kind: FailureKind, reason: Optional[str]) -> None:
        if session.is_terminal:
            return
        self._advance(session, SessionStatus.FAILED, failure_kind=kind, reason=reason)
        self._close(session)

    def _watch_popup(self, session: PaymentSession) -> None:
        adapter = self._adapters.get(session.session_id)
        if not self.watch_popups or not isinstance(adapter, PopupRedirectAdapter):
            return
        session_id = session.session_id
        self._watchers[session_id] = asyncio.create_task(
            adapter.watch_popup(
                on_closed=lambda: self.mark_popup_closed(session_id),
                interval=self.popup_poll_interval,
                timeout=self.popup_poll_timeout,
            )
        )

    def _close(self, session: PaymentSession) -> None:
        if self._active.get(session.user_id) == session.session_id:
            del self._active[session.user_id]
        watcher = self._watchers.pop(session.session_id, None)
        if watcher is not None:
            watcher.cancel()
        adapter = self._adapters.pop(session.session_id, None)
        if adapter is not None:
            adapter.on_session_closed()

    def _retain(self, session: PaymentSession) -> None:
        self._sessions[session.session_id] = session
        while len(self._sessions) > self.max_retained_sessions:
            oldest_id = next(
                (sid for sid, s in self._sessions.items() if s.is_terminal and sid not in self._active.values()),
                None,
            )
            if oldest_id is None:
                break
            oldest = self._sessions.pop(oldest_id)
            if oldest.transaction_id:
                self._by_transaction.pop(oldest.transaction_id, None)
