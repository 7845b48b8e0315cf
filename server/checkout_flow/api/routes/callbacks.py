from fastapi import APIRouter, Depends, HTTPException, Request, status

from checkout_flow.api.dependencies.checkout import get_checkout_service
from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.payment_gateways import (
    DuplicateProof,
    InvalidTransition,
    SessionNotFound,
)
from checkout_flow.models.session import PaymentMethodType
from checkout_flow.schemas.session import SessionRead
from checkout_flow.services.callback_parser import CallbackOutcome, MalformedCallback, parse_callback
from checkout_flow.services.checkout_service import CheckoutService

logger = get_logger(__name__)

router = APIRouter(prefix="/payments/callback", tags=["callbacks"])


@router.get("/{method}/{outcome}", response_model=SessionRead)
async def provider_callback_endpoint(
    method: PaymentMethodType,
    outcome: CallbackOutcome,
    request: Request,
    service: CheckoutService = Depends(get_checkout_service),
) -> SessionRead:
    try:
        params = parse_callback(method, outcome, dict(request.query_params))
    except MalformedCallback as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.error_message) from exc

    logger.info(
        "callback.received",
        method=method.value,
        outcome=outcome.value,
        transaction_id=params.transaction_id,
    )
    try:
        session = await service.handle_callback(params)
    except SessionNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.error_message) from exc
    except (InvalidTransition, DuplicateProof) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.error_message) from exc
    return SessionRead.from_session(session)
