from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from fitplan.config.constants import PLAN_API_BASE_URL, PLAN_API_TIMEOUT, PLAN_API_TOKEN
from fitplan.errors import PlanApiError
from fitplan.models import ApiEnvelope

logger = logging.getLogger(__name__)


def _is_connection_error(exc: BaseException) -> bool:
    return isinstance(exc, (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError))


class PlanApiClient:
    """Async client for the remote plan service and its {success, message, data} envelope."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = PLAN_API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or PLAN_API_BASE_URL).rstrip("/")
        self._token = token if token is not None else PLAN_API_TOKEN
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def set_token(self, token: Optional[str]) -> None:
        self._token = token or ""
        if self._client is not None:
            self._client.headers.update(self._headers())
            if not token:
                self._client.headers.pop("Authorization", None)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> ApiEnvelope:
        client = self._get_client()
        try:
            response = await client.request(method, path, json=json, params=params, timeout=timeout)
        except httpx.HTTPError as exc:
            if _is_connection_error(exc):
                await self.aclose()
            raise PlanApiError(f"{method} {path} failed: {exc}") from exc
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"success": response.is_success, "data": payload}
        envelope = ApiEnvelope.model_validate(payload)
        if response.is_error or not envelope.success:
            message = envelope.message or response.reason_phrase
            raise PlanApiError(f"{method} {path}: {message}", status_code=response.status_code)
        return envelope

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
