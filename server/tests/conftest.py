"""
Shared test configuration and fixtures for the checkout flow test suite.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError

from checkout_flow.core.config import Settings
from checkout_flow.integrations.browser.base import BrowserHost
from checkout_flow.models.session import (
    CheckoutItem,
    MethodConfig,
    MethodMode,
    PaymentMethodType,
    SessionConfig,
)
from checkout_flow.services.backend_client import BackendClient
from checkout_flow.services.checkout_service import CheckoutService
from checkout_flow.services.initiator import SessionInitiator
from checkout_flow.services.verifier import OutcomeVerifier


BACKEND_URL = "http://backend.test/api"
GATEWAY_URL = "https://sandbox.sslcommerz.com/gwprocess/v4/gw.php?Q=pay&SESSIONKEY=ABC123"


class FakeWindow:
    def __init__(self, closed: bool = False):
        self.closed = closed


class FakeBrowserHost(BrowserHost):
    """In-memory browser host recording every interaction."""

    def __init__(
        self,
        fail_scripts: bool = False,
        block_popups: bool = False,
        card_result: Optional[Dict[str, Any]] = None,
        card_error: Optional[Exception] = None,
        checkout_response: Optional[Dict[str, Any]] = None,
        window_error: Optional[Exception] = None,
    ):
        self.fail_scripts = fail_scripts
        self.block_popups = block_popups
        self.card_result = card_result
        self.card_error = card_error
        self.checkout_response = checkout_response or {}
        self.window_error = window_error
        self.scripts: List[str] = []
        self.windows: List[str] = []
        self.window = FakeWindow()
        self.confirmed_secrets: List[str] = []
        self.checkout_options: List[Dict[str, Any]] = []

    async def load_script(self, src, attributes=None):
        self.scripts.append(src)
        if self.fail_scripts:
            raise RuntimeError("net::ERR_BLOCKED_BY_CLIENT")

    def open_window(self, url, target="_blank", features=""):
        self.windows.append(url)
        if self.window_error is not None:
            raise self.window_error
        return None if self.block_popups else self.window

    async def mount_card_element(self, publishable_key, container):
        return {"key": publishable_key, "container": container}

    async def confirm_card_payment(self, client_secret, element):
        self.confirmed_secrets.append(client_secret)
        if self.card_error is not None:
            raise self.card_error
        return self.card_result or {}

    async def open_checkout(self, options):
        self.checkout_options.append(options)
        return self.checkout_response


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def setnx(self, key, value):
        self.commands.append(("setnx", key, value))

    def expire(self, key, ttl):
        self.commands.append(("expire", key, ttl))

    async def execute(self):
        self.redis.check()
        results = []
        for command, key, value in self.commands:
            if command == "setnx":
                created = key not in self.redis.store
                if created:
                    self.redis.store[key] = value.encode()
                results.append(created)
            else:
                results.append(True)
        return results


class FakeRedis:
    """Dict-backed stand-in for redis.asyncio.Redis; ``down`` makes every call fail."""

    def __init__(self, down: bool = False):
        self.store: Dict[str, bytes] = {}
        self.down = down

    def check(self) -> None:
        if self.down:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def get(self, key):
        self.check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.check()
        self.store[key] = value.encode()

    async def delete(self, key):
        self.check()
        self.store.pop(key, None)


class BackendStub:
    """Programmable backend behind an httpx.MockTransport."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responses: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def respond(self, path: str, status_code: int = 200, body: Any = None, **kwargs) -> None:
        self.responses[path] = lambda request: httpx.Response(status_code, json=body, **kwargs)

    def fail(self, path: str) -> None:
        def raise_error(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.responses[path] = raise_error

    def calls(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == f"/api{path}"]

    def body(self, path: str, index: int = 0) -> Dict[str, Any]:
        return json.loads(self.calls(path)[index].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        if path not in self.responses:
            return httpx.Response(404, json={"message": "not found"})
        return self.responses[path](request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings():
    return Settings(
        backend_base_url=BACKEND_URL,
        popup_poll_interval_seconds=0.01,
        popup_poll_timeout_seconds=1.0,
        _env_file=None,
    )


@pytest.fixture
def backend_stub():
    return BackendStub()


@pytest_asyncio.fixture
async def backend_client(settings, backend_stub):
    client = BackendClient(settings, transport=backend_stub.transport)
    yield client
    await client.aclose()


@pytest.fixture
def method_configs():
    return {
        PaymentMethodType.PAYPAL: MethodConfig(
            PaymentMethodType.PAYPAL, enabled=True, credentials={"client_id": "paypal-client"}
        ),
        PaymentMethodType.STRIPE: MethodConfig(
            PaymentMethodType.STRIPE, enabled=True, credentials={"publishable_key": "pk_test_123"}
        ),
        PaymentMethodType.RAZORPAY: MethodConfig(
            PaymentMethodType.RAZORPAY, enabled=True, credentials={"key_id": "rzp_test_123"}
        ),
        PaymentMethodType.SSLCOMMERZ: MethodConfig(
            PaymentMethodType.SSLCOMMERZ, enabled=True, mode=MethodMode.TEST
        ),
        PaymentMethodType.COD: MethodConfig(PaymentMethodType.COD, enabled=True),
    }


@pytest.fixture
def session_config(method_configs):
    return SessionConfig(user_id="user-1", method_configs=method_configs, auth_token="token-abc")


@pytest.fixture
def items():
    return [CheckoutItem("book-42"), CheckoutItem("book-7", quantity=2)]


@pytest.fixture
def browser_host():
    return FakeBrowserHost()


@pytest.fixture
def checkout_service(backend_client):
    return CheckoutService(
        initiator=SessionInitiator(backend_client),
        verifier=OutcomeVerifier(backend_client),
        watch_popups=False,
    )
