"""HTTP client for the visitor check-in REST endpoints."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..logging_config import mask_phone
from .schemas import CheckInRequest, CheckInResponse, PageSettingResponse

logger = logging.getLogger(__name__)

CHECKIN_PATH = "/api/visitors/checkin"
PAGE_SETTING_PATH = "/api/pagesetting"


class NetworkError(RuntimeError):
    """Raised when the check-in service could not produce a usable response."""


class CheckInBackend(Protocol):
    """Network capability the session controller depends on."""

    async def submit_check_in(self, request: CheckInRequest) -> CheckInResponse: ...

    async def fetch_branding(self, page_name: str) -> PageSettingResponse: ...

    async def aclose(self) -> None: ...


class CheckInHttpClient:
    """Thin wrapper around the check-in service REST API."""

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=self.settings.service_base_url,
            timeout=self.settings.http_timeout_seconds,
            transport=transport,
        )

    async def submit_check_in(self, request: CheckInRequest) -> CheckInResponse:
        """Post the visitor phone number; any unusable reply raises NetworkError."""
        try:
            logger.info("checkin.submit: posting check-in for %s", mask_phone(request.phone))
            response = await self._client.post(
                CHECKIN_PATH,
                json=request.model_dump(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            logger.error("checkin.submit: request timeout")
            raise NetworkError("check-in request timed out") from e
        except httpx.HTTPError as e:
            logger.error("checkin.submit: network error - %s", e)
            raise NetworkError(f"check-in request failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            logger.error("checkin.submit: HTTP %d returned non-JSON body", response.status_code)
            raise NetworkError("check-in response was not JSON") from e

        try:
            result = CheckInResponse.model_validate(data)
        except ValidationError as e:
            logger.error("checkin.submit: unexpected response shape %s", data)
            raise NetworkError("check-in response had an unexpected shape") from e

        logger.info("checkin.submit: HTTP %d success=%s", response.status_code, result.success)
        return result

    async def fetch_branding(self, page_name: str) -> PageSettingResponse:
        """Fetch the page setting that carries the kiosk background image."""
        response = await self._client.get(PAGE_SETTING_PATH, params={"pagename": page_name})
        response.raise_for_status()
        return PageSettingResponse.model_validate(response.json())

    async def aclose(self) -> None:
        try:
            await self._client.aclose()
        except Exception as e:
            logger.warning("Error closing HTTP client: %s", e)


__all__ = ["CheckInBackend", "CheckInHttpClient", "NetworkError"]
