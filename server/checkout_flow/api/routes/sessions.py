from fastapi import APIRouter, Depends, HTTPException, status

from checkout_flow.api.dependencies.checkout import get_checkout_service
from checkout_flow.integrations.payment_gateways import InvalidTransition, SessionNotFound
from checkout_flow.schemas.session import FallbackLinkRead, SessionRead
from checkout_flow.services.checkout_service import CheckoutService

router = APIRouter(prefix="/payments/sessions", tags=["sessions"])


@router.get("/{session_id}", response_model=SessionRead)
async def get_session_endpoint(
    session_id: str,
    service: CheckoutService = Depends(get_checkout_service),
) -> SessionRead:
    try:
        session = service.get_session(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.error_message) from exc
    return SessionRead.from_session(session)


@router.post("/{session_id}/fallback", response_model=FallbackLinkRead)
async def follow_fallback_endpoint(
    session_id: str,
    service: CheckoutService = Depends(get_checkout_service),
) -> FallbackLinkRead:
    try:
        link = service.follow_fallback(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.error_message) from exc
    except InvalidTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.error_message) from exc
    return FallbackLinkRead(transaction_id=link.transaction_id, url=link.url)
