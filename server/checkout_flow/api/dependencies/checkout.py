from fastapi import HTTPException, Request, status

from checkout_flow.services.checkout_service import CheckoutService


def get_checkout_service(request: Request) -> CheckoutService:
    service = getattr(request.app.state, "checkout_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Checkout not ready")
    return service
