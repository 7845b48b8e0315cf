from checkout_flow.services import (
    backend_client,
    callback_parser,
    checkout_service,
    initiator,
    state_machine,
    verifier,
)

__all__ = [
    "backend_client",
    "callback_parser",
    "checkout_service",
    "initiator",
    "state_machine",
    "verifier",
]
