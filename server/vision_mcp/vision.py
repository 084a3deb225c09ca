from typing import Any

import httpx
import structlog

from .config import settings
from .errors import MCPError

logger = structlog.get_logger(__name__)


class VisionClient:
    def __init__(self, base_url: str | None = None) -> None:
        self._base_url = (base_url or settings.vision_base_url).rstrip("/")
        self._client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    async def request(
        self,
        method: str,
        endpoint: str,
        api_key: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        if not api_key:
            raise MCPError("AUTH_REQUIRED", "API key is not set", status=401)
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "access_token": api_key,
        }
        url = f"{self._base_url}{endpoint}"
        method = method.upper()
        if method == "GET":
            kwargs: dict[str, Any] = {"params": params or {}}
        elif method == "POST":
            kwargs = {"json": params or {}}
        else:
            raise ValueError(f"Unsupported HTTP method: {method}")

        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("vision_request_failed", endpoint=endpoint, error=str(exc))
            raise MCPError(
                "UPSTREAM_ERROR", f"Vision request failed: {exc}", status=502
            ) from exc
        if response.status_code >= 400:
            logger.warning(
                "vision_error_response", endpoint=endpoint, status=response.status_code
            )
            raise MCPError(
                "UPSTREAM_ERROR",
                f"Vision error {response.status_code}: {response.text}",
                status=502,
            )
        if response.status_code == 204:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise MCPError(
                "UPSTREAM_ERROR", "Vision returned a non-JSON body", status=502
            ) from exc

    async def close(self) -> None:
        await self._client.aclose()
