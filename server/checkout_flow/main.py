from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from checkout_flow.api.dependencies.redis import redis_client_for
from checkout_flow.api.routes import callbacks, health, sessions
from checkout_flow.core.config import Settings, get_settings
from checkout_flow.core.logging import configure_logging, get_logger
from checkout_flow.services.backend_client import BackendClient
from checkout_flow.services.checkout_service import CheckoutService

logger = get_logger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    service: Optional[CheckoutService] = None,
) -> FastAPI:
    """
    Build the callback receiver.

    When ``service`` is given (an embedding application or a test), it is
    used as is and owned by the caller. Otherwise the lifespan builds one
    from settings and closes it on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        logger.info("application.startup", environment=settings.environment)
        if service is not None:
            application.state.checkout_service = service
            yield
            logger.info("application.shutdown")
            return

        async with BackendClient(settings) as backend, redis_client_for(settings) as redis_client:
            owned = CheckoutService.from_settings(settings, backend, redis_client=redis_client)
            application.state.checkout_service = owned
            try:
                yield
            finally:
                await owned.shutdown()
                logger.info("application.shutdown")

    application = FastAPI(title=settings.app_name, lifespan=lifespan)
    application.include_router(health.router)
    application.include_router(callbacks.router)
    application.include_router(sessions.router)

    if settings.allowed_origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin).rstrip("/") for origin in settings.allowed_origins],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    return application


def get_application() -> FastAPI:
    """Factory for ``uvicorn --factory checkout_flow.main:get_application``."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_application(settings)
