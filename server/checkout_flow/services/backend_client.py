from __future__ import annotations

from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError

from checkout_flow.core.config import Settings
from checkout_flow.core.logging import get_logger
from checkout_flow.integrations.payment_gateways.base import CheckoutError
from checkout_flow.models.session import MethodConfig, PaymentKind, PaymentMethodType
from checkout_flow.schemas.backend import (
    InitiationRequest,
    InitiationResponse,
    MethodConfigPayload,
    VerificationRequest,
    VerificationResponse,
)
from checkout_flow.schemas.common import CamelModel

logger = get_logger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=CamelModel)


class BackendUnavailable(CheckoutError):
    """Backend could not be reached or answered with something unusable."""


class BackendClient:
    """HTTP client for the checkout backend."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.backend_base_url.rstrip("/"),
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, auth_token: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        auth_token: Optional[str] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, json=json, headers=self._headers(auth_token))
        except httpx.HTTPError as exc:
            logger.error("backend.unreachable", path=path, error=str(exc))
            raise BackendUnavailable(
                f"backend unreachable: {exc}",
                error_code="backend_unreachable",
                details={"path": path},
            ) from exc

        if response.status_code >= 500:
            logger.error("backend.server_error", path=path, status_code=response.status_code)
            raise BackendUnavailable(
                f"backend returned HTTP {response.status_code}",
                error_code=f"http_{response.status_code}",
                details={"path": path, "body": response.text[:500]},
            )
        return response

    def _parse(self, response: httpx.Response, model: Type[ResponseModel]) -> ResponseModel:
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            if not isinstance(body, dict):
                raise BackendUnavailable(
                    "backend returned a non-JSON response",
                    error_code="malformed_response",
                    details={"status_code": response.status_code},
                )
            try:
                return model.model_validate(body)
            except ValidationError as exc:
                raise BackendUnavailable(
                    f"backend response did not match {model.__name__}: {exc.error_count()} errors",
                    error_code="malformed_response",
                    details={"status_code": response.status_code},
                ) from exc

        # 4xx: the backend understood and refused
        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("detail")
        return model.model_validate(
            {"success": False, "message": message or response.text or f"HTTP {response.status_code}"}
        )

    async def fetch_method_configs(self, auth_token: Optional[str] = None) -> Dict[PaymentMethodType, MethodConfig]:
        """Fetch the method catalogue; unknown methods are skipped."""
        response = await self._request("GET", self.settings.methods_path, auth_token=auth_token)
        if not response.is_success:
            raise BackendUnavailable(
                f"method catalogue returned HTTP {response.status_code}",
                error_code=f"http_{response.status_code}",
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise BackendUnavailable("method catalogue is not JSON", error_code="malformed_response") from exc

        entries = body.get("methods", []) if isinstance(body, dict) else body
        if not isinstance(entries, list):
            raise BackendUnavailable("method catalogue is not a list", error_code="malformed_response")

        configs: Dict[PaymentMethodType, MethodConfig] = {}
        for entry in entries:
            try:
                payload = MethodConfigPayload.model_validate(entry)
            except ValidationError:
                logger.warning("backend.method_skipped", entry=entry)
                continue
            configs[payload.method] = payload.to_config()
        return configs

    async def initiate(
        self,
        request: InitiationRequest,
        auth_token: Optional[str] = None,
    ) -> InitiationResponse:
        path = self.settings.purchase_path if request.kind is PaymentKind.BOOK else self.settings.subscribe_path
        response = await self._request("POST", path, auth_token=auth_token, json=request.to_wire())
        return self._parse(response, InitiationResponse)

    async def verify(
        self,
        request: VerificationRequest,
        auth_token: Optional[str] = None,
    ) -> VerificationResponse:
        response = await self._request(
            "POST", self.settings.verify_path, auth_token=auth_token, json=request.to_wire()
        )
        if response.status_code == httpx.codes.CONFLICT:
            logger.info("backend.already_verified", transaction_id=request.transaction_id)
            return VerificationResponse(success=True, already_verified=True, message="already verified")
        return self._parse(response, VerificationResponse)
