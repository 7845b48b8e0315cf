from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_endpoint(request: Request) -> dict:
    service = getattr(request.app.state, "checkout_service", None)
    return {"status": "ok" if service is not None else "starting"}
