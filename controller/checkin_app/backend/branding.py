"""Best-effort loader for the kiosk background image."""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from .http_client import CheckInBackend
from .schemas import PageSettingResponse

logger = logging.getLogger(__name__)


class BrandingLoadError(RuntimeError):
    """The page setting did not yield a usable image."""


class BackgroundImageLoader:
    """Resolve the branding image URL; every failure degrades to ``None``."""

    def __init__(self, client: CheckInBackend, *, service_base_url: str, page_name: str = "Login") -> None:
        self._client = client
        self._page_name = page_name
        parsed = urlparse(service_base_url)
        self._origin = f"{parsed.scheme}://{parsed.netloc}" if parsed.netloc else service_base_url.rstrip("/")

    async def load(self) -> Optional[str]:
        try:
            result = await self._client.fetch_branding(self._page_name)
            return self._resolve(result)
        except httpx.HTTPStatusError as exc:
            logger.warning("branding.load: HTTP %d for page %s", exc.response.status_code, self._page_name)
        except httpx.HTTPError as exc:
            logger.warning("branding.load: network error - %s", exc)
        except ValueError as exc:
            logger.warning("branding.load: malformed page setting - %s", exc)
        except BrandingLoadError as exc:
            logger.warning("branding.load: %s", exc)
        except Exception:
            logger.exception("branding.load: unexpected error")
        return None

    def _resolve(self, result: PageSettingResponse) -> str:
        if not result.success:
            raise BrandingLoadError(f"page setting {self._page_name!r} reported success=false")
        if not result.data:
            raise BrandingLoadError(f"page setting {self._page_name!r} returned no entries")
        image = (result.data[0].image or "").strip()
        if not image:
            raise BrandingLoadError(f"page setting {self._page_name!r} has no image")
        if image.startswith("http"):
            return image
        if not image.startswith("/"):
            image = "/" + image
        return f"{self._origin}{image}"


__all__ = ["BackgroundImageLoader", "BrandingLoadError"]
