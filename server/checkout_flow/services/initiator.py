from __future__ import annotations

from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.payment_gateways.base import (
    InitiationFailed,
    InitiationResult,
    MethodAdapterFactory,
    MethodUnavailable,
    RequestRejected,
)
from checkout_flow.models.session import PaymentMethodType, PaymentSession
from checkout_flow.schemas.backend import InitiationRequest
from checkout_flow.services.backend_client import BackendClient, BackendUnavailable

logger = get_logger(__name__)


def ensure_method_enabled(session: PaymentSession, method: PaymentMethodType) -> None:
    """Raise MethodUnavailable unless ``method`` is registered and enabled for the session."""
    MethodAdapterFactory.adapter_class(method)
    if method not in session.config.enabled_methods():
        raise MethodUnavailable(
            f"{method.value} is not enabled for this checkout",
            error_code="method_disabled",
            provider=method.value,
        )


class SessionInitiator:
    """Sends the purchase or subscription intent to the backend."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def initiate(self, session: PaymentSession, method: PaymentMethodType) -> InitiationResult:
        """
        Ask the backend to open a transaction for ``session`` paid with ``method``.

        Raises:
            MethodUnavailable: Method disabled or unsupported; no request is sent
            InitiationFailed: Backend unreachable or the response is unusable
            RequestRejected: Backend declined the request
        """
        ensure_method_enabled(session, method)

        request = InitiationRequest(
            user_id=session.user_id,
            items=session.item_payload,
            method=method,
            kind=session.kind,
        )
        try:
            response = await self.backend.initiate(request, auth_token=session.config.auth_token)
        except BackendUnavailable as exc:
            raise InitiationFailed(
                exc.error_message,
                error_code=exc.error_code,
                provider=method.value,
                details=exc.details,
            ) from exc

        if not response.success:
            logger.info(
                "initiator.rejected",
                session_id=session.session_id,
                method=method.value,
                message=response.message,
            )
            raise RequestRejected(
                response.message or "payment request rejected",
                error_code="request_rejected",
                provider=method.value,
            )

        if not response.transaction_id:
            raise InitiationFailed(
                "backend accepted the request without a transaction id",
                error_code="missing_transaction_id",
                provider=method.value,
            )

        result = InitiationResult(
            transaction_id=response.transaction_id,
            method=method,
            gateway_url=response.gateway_url,
            client_secret=response.client_secret,
            order_id=response.order_id,
            message=response.message,
        )
        required = MethodAdapterFactory.adapter_class(method).initiation_field
        if required and not getattr(result, required):
            raise InitiationFailed(
                f"backend response has no {required} for {method.value}",
                error_code="missing_initiation_field",
                provider=method.value,
                transaction_id=result.transaction_id,
            )

        logger.info(
            "initiator.initiated",
            session_id=session.session_id,
            method=method.value,
            transaction_id=result.transaction_id,
        )
        return result
