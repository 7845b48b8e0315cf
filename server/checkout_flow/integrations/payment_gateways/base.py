"""
Method Adapter Base Classes and Interfaces

Defines the contract every payment-method adapter follows, the events an
adapter emits back to the checkout coordinator, and the error taxonomy
shared by the whole checkout flow.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.browser.base import BrowserHost
from checkout_flow.models.session import (
    FailureKind,
    FallbackLink,
    MethodConfig,
    PaymentMethodType,
)

logger = get_logger(__name__)


class CheckoutError(Exception):
    """Base class for every error the checkout flow surfaces."""

    failure_kind: Optional[FailureKind] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
        transaction_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.error_message = message
        self.error_code = error_code
        self.provider = provider
        self.transaction_id = transaction_id
        self.details = details or {}


class InitiationFailed(CheckoutError):
    """Backend unreachable or returned an unusable initiation response."""
    failure_kind = FailureKind.INITIATION_FAILED


class RequestRejected(CheckoutError):
    """Backend declined the purchase or subscription request."""
    failure_kind = FailureKind.REQUEST_REJECTED


class ScriptLoadError(CheckoutError):
    failure_kind = FailureKind.SCRIPT_LOAD_ERROR


class PopupBlocked(CheckoutError):
    """Window creation refused. Recoverable through the fallback link."""
    failure_kind = FailureKind.POPUP_BLOCKED

    def __init__(self, message: str, fallback: FallbackLink, **kwargs):
        super().__init__(message, transaction_id=fallback.transaction_id, **kwargs)
        self.fallback = fallback


class ProviderDeclined(CheckoutError):
    failure_kind = FailureKind.PROVIDER_DECLINED


class VerificationFailed(CheckoutError):
    failure_kind = FailureKind.VERIFICATION_FAILED


class Cancelled(CheckoutError):
    failure_kind = FailureKind.CANCELLED


class MethodUnavailable(CheckoutError):
    """Method is unknown, disabled, or missing the credentials its adapter needs."""


class SessionInFlight(CheckoutError):
    pass


class SessionNotFound(CheckoutError):
    pass


class InvalidTransition(CheckoutError):
    pass


class DuplicateProof(CheckoutError):
    """The same proof is already being verified elsewhere."""


class AdapterState(str, Enum):
    """Lifecycle of a single adapter attempt."""
    IDLE = "idle"
    # popup/redirect style
    SCRIPT_LOADING = "script_loading"
    SCRIPT_READY = "script_ready"
    POPUP_OPEN = "popup_open"
    POPUP_CLOSED_UNCONFIRMED = "popup_closed_unconfirmed"
    REDIRECT_RECEIVED = "redirect_received"
    # embedded-element style
    ELEMENT_MOUNTED = "element_mounted"
    CONFIRM_PENDING = "confirm_pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    # sdk-checkout style
    CHECKOUT_OPEN = "checkout_open"
    COMPLETED = "completed"
    DISMISSED = "dismissed"
    FAILED = "failed"


class AdapterEventKind(str, Enum):
    AWAITING_REDIRECT = "awaiting_redirect"
    PROOF = "proof"
    DECLINED = "declined"
    FAILED = "failed"
    FALLBACK = "fallback"
    CANCELLED = "cancelled"


@dataclass
class AdapterEvent:
    """The one message an adapter emits for an attempt."""
    kind: AdapterEventKind
    proof: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None
    fallback: Optional[FallbackLink] = None
    error: Optional[CheckoutError] = None

    @classmethod
    def awaiting_redirect(cls) -> "AdapterEvent":
        return cls(AdapterEventKind.AWAITING_REDIRECT)

    @classmethod
    def with_proof(cls, proof: Dict[str, str]) -> "AdapterEvent":
        return cls(AdapterEventKind.PROOF, proof=dict(proof))

    @classmethod
    def declined(cls, error: ProviderDeclined) -> "AdapterEvent":
        return cls(AdapterEventKind.DECLINED, message=error.error_message, error=error)

    @classmethod
    def failed(cls, error: CheckoutError) -> "AdapterEvent":
        return cls(AdapterEventKind.FAILED, message=error.error_message, error=error)

    @classmethod
    def blocked(cls, error: PopupBlocked) -> "AdapterEvent":
        return cls(
            AdapterEventKind.FALLBACK,
            message=error.error_message,
            fallback=error.fallback,
            error=error,
        )

    @classmethod
    def cancelled(cls, message: str = "payment cancelled") -> "AdapterEvent":
        return cls(AdapterEventKind.CANCELLED, message=message, error=Cancelled(message))

    @property
    def is_terminal(self) -> bool:
        return self.kind is not AdapterEventKind.AWAITING_REDIRECT


@dataclass
class InitiationResult:
    """Transaction id plus the method-specific parameters from the backend."""
    transaction_id: str
    method: PaymentMethodType
    gateway_url: Optional[str] = None
    client_secret: Optional[str] = None
    order_id: Optional[str] = None
    message: Optional[str] = None


class MethodAdapter(ABC):
    """Abstract base class for payment-method adapters.

    Subclasses declare ``transitions`` for their own adapter states,
    ``required_credentials`` they need from the method config, and
    ``initiation_field`` naming the InitiationResult attribute the
    backend must fill in for the method.
    """

    transitions: Dict[AdapterState, Tuple[AdapterState, ...]] = {}
    required_credentials: Tuple[str, ...] = ()
    initiation_field: Optional[str] = None
    requires_host: bool = True

    def __init__(self, config: MethodConfig, host: Optional[BrowserHost] = None, **options):
        """
        Initialize the adapter.

        Args:
            config: Method configuration supplied by the backend
            host: Browser host that loads scripts, opens windows and runs SDKs
            **options: Adapter specific options

        Raises:
            MethodUnavailable: If the config is for another method, the
                method is disabled, a required credential is missing, or
                no host was supplied to an adapter that needs one
        """
        self.method_type = self._get_method_type()
        if config.method is not self.method_type:
            raise MethodUnavailable(
                f"{type(self).__name__} cannot run {config.method.value}",
                error_code="method_mismatch",
                provider=self.method_type.value,
            )
        if not config.enabled:
            raise MethodUnavailable(
                f"{self.method_type.value} is not enabled",
                error_code="method_disabled",
                provider=self.method_type.value,
            )
        missing = [name for name in self.required_credentials if not config.credential(name)]
        if missing:
            raise MethodUnavailable(
                f"{self.method_type.value} is missing credentials: {', '.join(missing)}",
                error_code="missing_credentials",
                provider=self.method_type.value,
            )
        if self.requires_host and host is None:
            raise MethodUnavailable(
                f"{self.method_type.value} needs a browser host",
                error_code="missing_host",
                provider=self.method_type.value,
            )

        self.config = config
        self.host = host
        self.options = options
        self.state = AdapterState.IDLE
        self.history: List[AdapterState] = [AdapterState.IDLE]

    @abstractmethod
    def _get_method_type(self) -> PaymentMethodType:
        """Return the method this adapter drives."""
        pass

    @abstractmethod
    async def _drive(self, initiation: InitiationResult) -> AdapterEvent:
        """Run the provider interaction and return its event."""
        pass

    async def run(self, initiation: InitiationResult) -> AdapterEvent:
        """
        Drive one provider interaction.

        Args:
            initiation: Parameters returned by the session initiator

        Returns:
            The adapter's event for this attempt

        Raises:
            InvalidTransition: If the adapter already ran
            InitiationFailed: If the initiation lacks the field this method needs
        """
        if self.state is not AdapterState.IDLE:
            raise InvalidTransition(
                f"{self.method_type.value} adapter already used for this attempt",
                error_code="adapter_reused",
                provider=self.method_type.value,
                transaction_id=initiation.transaction_id,
            )
        if self.initiation_field and not getattr(initiation, self.initiation_field):
            raise InitiationFailed(
                f"initiation response has no {self.initiation_field} for {self.method_type.value}",
                error_code="missing_initiation_field",
                provider=self.method_type.value,
                transaction_id=initiation.transaction_id,
            )

        event = await self._drive(initiation)
        logger.info(
            "adapter.event",
            method=self.method_type.value,
            transaction_id=initiation.transaction_id,
            kind=event.kind.value,
            state=self.state.value,
        )
        return event

    def _set_state(self, target: AdapterState) -> None:
        allowed = self.transitions.get(self.state, ())
        if target not in allowed:
            raise InvalidTransition(
                f"adapter transition {self.state.value} → {target.value} not permitted",
                error_code="adapter_transition",
                provider=self.method_type.value,
            )
        self.state = target
        self.history.append(target)

    async def _load_script(self, src: str, transaction_id: str) -> Optional[AdapterEvent]:
        """Load the provider script, returning a FAILED event if it does not load."""
        self._set_state(AdapterState.SCRIPT_LOADING)
        try:
            await self.host.load_script(src)
        except Exception as exc:
            logger.warning(
                "adapter.script_load_failed",
                method=self.method_type.value,
                src=src,
                error=str(exc),
            )
            self._set_state(AdapterState.FAILED)
            return AdapterEvent.failed(
                ScriptLoadError(
                    f"could not load {src}: {exc}",
                    error_code="script_load_error",
                    provider=self.method_type.value,
                    transaction_id=transaction_id,
                )
            )
        self._set_state(AdapterState.SCRIPT_READY)
        return None

    def on_redirect_received(self) -> None:
        """Provider redirect reached the callback address."""

    def on_session_closed(self) -> None:
        """Session reached a terminal state; release anything still held."""


class MethodAdapterFactory:
    """Factory for creating method adapter instances."""

    _adapters: Dict[PaymentMethodType, Type[MethodAdapter]] = {}

    @classmethod
    def register_adapter(cls, method: PaymentMethodType, adapter_class: Type[MethodAdapter]):
        """Register an adapter implementation."""
        cls._adapters[method] = adapter_class

    @classmethod
    def adapter_class(cls, method: PaymentMethodType) -> Type[MethodAdapter]:
        if method not in cls._adapters:
            raise MethodUnavailable(
                f"Unsupported payment method: {method}",
                error_code="method_unsupported",
                provider=getattr(method, "value", str(method)),
            )
        return cls._adapters[method]

    @classmethod
    def create_adapter(
        cls,
        config: MethodConfig,
        host: Optional[BrowserHost] = None,
        **options,
    ) -> MethodAdapter:
        """Create an adapter instance for the method in ``config``."""
        return cls.adapter_class(config.method)(config, host=host, **options)

    @classmethod
    def get_supported_methods(cls) -> List[PaymentMethodType]:
        """Get list of registered method types."""
        return list(cls._adapters.keys())
