from .base import BrowserHost, WindowHandle

__all__ = ["BrowserHost", "WindowHandle"]
