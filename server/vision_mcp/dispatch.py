import json
from typing import Any

import mcp.types as types
import structlog

from .errors import InvalidSessionId, MCPError
from .logging import session_fingerprint
from .session import BackendError, Resolved, SessionResolver, Unauthenticated
from .vision import VisionClient

logger = structlog.get_logger(__name__)

API_KEY_NOT_FOUND = (
    "API key not found. Bind your 1492.Vision API key to this session "
    "with the auth_set_api_key tool."
)

ARTICLE_RANKINGS = ("latest", "best")


def check_ranking(ranking: str) -> str:
    if ranking not in ARTICLE_RANKINGS:
        raise ValueError(f"Unknown article ranking: {ranking}")
    return ranking


def text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


def json_result(payload: Any) -> types.CallToolResult:
    return text_result(json.dumps(payload, indent=2))


def error_result(err: MCPError) -> types.CallToolResult:
    return text_result(f"Error: {err.message}", is_error=True)


class ToolDispatcher:
    """Runs one analytics tool call on behalf of the calling session.

    The credential is looked up per call and handed to exactly one upstream
    request. Every failure comes back as an ``isError`` result so a single
    bad call never aborts the transport.
    """

    def __init__(self, resolver: SessionResolver, client: VisionClient) -> None:
        self._resolver = resolver
        self._client = client

    async def call(
        self,
        session_id: str | None,
        endpoint: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
    ) -> types.CallToolResult:
        try:
            resolution = await self._resolver.resolve(session_id)
        except InvalidSessionId:
            return text_result(API_KEY_NOT_FOUND, is_error=True)

        if isinstance(resolution, Unauthenticated):
            return text_result(API_KEY_NOT_FOUND, is_error=True)
        if isinstance(resolution, BackendError):
            return text_result(
                f"Credential store unavailable, please retry: {resolution.message}",
                is_error=True,
            )
        if not isinstance(resolution, Resolved):  # pragma: no cover - exhaustive
            raise TypeError(f"Unexpected resolution {resolution!r}")

        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            data = await self._client.request(
                method, endpoint, resolution.credential, query
            )
        except MCPError as exc:
            logger.warning(
                "tool_upstream_failed",
                endpoint=endpoint,
                session=session_fingerprint(session_id),
                code=exc.code,
            )
            return error_result(exc)
        return json_result(data)
