"""
Popup/Redirect Adapter

Shared flow for hosted-page gateways: load the provider script, open the
gateway URL in a new window, then wait for the provider to redirect to a
callback address. The window is only watched for UX; the redirect is the
outcome.
"""

import asyncio
from abc import abstractmethod
from typing import Awaitable, Callable, Optional, Union

from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.browser.base import WindowHandle
from checkout_flow.models.session import FallbackLink

from .base import (
    AdapterEvent,
    AdapterState,
    InitiationResult,
    MethodAdapter,
    PopupBlocked,
)

logger = get_logger(__name__)

ClosedCallback = Callable[[], Union[None, Awaitable[None]]]


class PopupRedirectAdapter(MethodAdapter):
    """Base for adapters that finish out-of-band through a redirect."""

    transitions = {
        AdapterState.IDLE: (AdapterState.SCRIPT_LOADING,),
        AdapterState.SCRIPT_LOADING: (AdapterState.SCRIPT_READY, AdapterState.FAILED),
        AdapterState.SCRIPT_READY: (AdapterState.POPUP_OPEN, AdapterState.FAILED),
        AdapterState.POPUP_OPEN: (
            AdapterState.POPUP_CLOSED_UNCONFIRMED,
            AdapterState.REDIRECT_RECEIVED,
        ),
        AdapterState.POPUP_CLOSED_UNCONFIRMED: (AdapterState.REDIRECT_RECEIVED,),
        AdapterState.FAILED: (AdapterState.REDIRECT_RECEIVED,),
    }
    initiation_field = "gateway_url"
    window_target = "_blank"
    window_features = "width=600,height=800"

    def __init__(self, config, host=None, **options):
        super().__init__(config, host=host, **options)
        self.window: Optional[WindowHandle] = None

    @abstractmethod
    def script_url(self, initiation: InitiationResult) -> str:
        """URL of the provider script to load before opening the popup."""
        pass

    async def _drive(self, initiation: InitiationResult) -> AdapterEvent:
        failure = await self._load_script(self.script_url(initiation), initiation.transaction_id)
        if failure is not None:
            return failure

        gateway_url = initiation.gateway_url
        try:
            window = self.host.open_window(gateway_url, self.window_target, self.window_features)
        except Exception as exc:
            logger.warning("adapter.popup_error", method=self.method_type.value, error=str(exc))
            window = None
        if not window:
            self._set_state(AdapterState.FAILED)
            logger.info(
                "adapter.popup_blocked",
                method=self.method_type.value,
                transaction_id=initiation.transaction_id,
            )
            return AdapterEvent.blocked(
                PopupBlocked(
                    "popup window was blocked",
                    FallbackLink(transaction_id=initiation.transaction_id, url=gateway_url),
                    error_code="popup_blocked",
                    provider=self.method_type.value,
                )
            )

        self.window = window
        self._set_state(AdapterState.POPUP_OPEN)
        return AdapterEvent.awaiting_redirect()

    async def watch_popup(
        self,
        on_closed: Optional[ClosedCallback] = None,
        interval: float = 1.0,
        timeout: float = 900.0,
    ) -> bool:
        """
        Poll the popup until it closes, the redirect arrives, or ``timeout`` passes.

        Returns:
            True if the window closed before any redirect was received
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while self.state is AdapterState.POPUP_OPEN and loop.time() < deadline:
            if self.window is not None and self.window.closed:
                self._set_state(AdapterState.POPUP_CLOSED_UNCONFIRMED)
                logger.info("adapter.popup_closed_unconfirmed", method=self.method_type.value)
                if on_closed is not None:
                    result = on_closed()
                    if asyncio.iscoroutine(result):
                        await result
                return True
            await asyncio.sleep(interval)
        return False

    def on_redirect_received(self) -> None:
        if self.state in self.transitions and AdapterState.REDIRECT_RECEIVED in self.transitions[self.state]:
            self._set_state(AdapterState.REDIRECT_RECEIVED)
