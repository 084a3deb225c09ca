from typing import Any

SESSION_HEADER = "mcp-session-id"


def current_session_id(ctx: Any) -> str | None:
    """Session id assigned by the streamable HTTP transport, if any."""
    try:
        request = ctx.request_context.request
    except (LookupError, ValueError, AttributeError):
        return None
    if request is None:  # stdio and other transports without a request
        return None
    headers = getattr(request, "headers", None)
    if not headers:
        return None
    return headers.get(SESSION_HEADER) or None
