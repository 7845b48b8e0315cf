"""
Browser Host Interface

The checkout never touches the DOM itself. Script injection, window
creation and the provider SDK widgets are reached through a host object
supplied by whoever embeds the checkout.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Protocol


class WindowHandle(Protocol):
    """A browser window opened by the host."""

    @property
    def closed(self) -> bool:
        ...


class BrowserHost(ABC):
    """Abstract base class for the environment the checkout runs in."""

    @abstractmethod
    async def load_script(self, src: str, attributes: Optional[Dict[str, str]] = None) -> None:
        """
        Load an external script.

        Args:
            src: Script URL
            attributes: Extra attributes for the script element

        Raises:
            Exception: Any error means the script is unusable
        """
        pass

    @abstractmethod
    def open_window(self, url: str, target: str = "_blank", features: str = "") -> Optional[WindowHandle]:
        """
        Open a new browser window.

        Returns:
            The window handle, or a falsy value if the browser refused
        """
        pass

    async def mount_card_element(self, publishable_key: str, container: str) -> Any:
        """
        Mount a hosted card element.

        Returns:
            Opaque element handle passed back to ``confirm_card_payment``
        """
        raise NotImplementedError("Card elements not supported by this host")

    async def confirm_card_payment(self, client_secret: str, element: Any) -> Dict[str, Any]:
        """
        Confirm a card payment through the hosted element.

        Returns:
            Provider result, ``{"paymentIntent": {...}}`` or ``{"error": {...}}``
        """
        raise NotImplementedError("Card elements not supported by this host")

    async def open_checkout(self, options: Dict[str, Any]) -> Dict[str, Any]:
        """
        Open a provider-controlled checkout and wait for its single callback.

        Returns:
            The callback payload; ``event`` names which callback fired
        """
        raise NotImplementedError("SDK checkout not supported by this host")
