import mcp.types as types

from ..dispatch import ToolDispatcher


async def api_quota(
    dispatcher: ToolDispatcher, session_id: str | None
) -> types.CallToolResult:
    return await dispatcher.call(session_id, "/partner1/api_quota")


async def host_batch_simple(
    dispatcher: ToolDispatcher, session_id: str | None, urls: list[str]
) -> types.CallToolResult:
    return await dispatcher.call(
        session_id, "/partner1/host_batch_simple", "POST", {"urls": urls}
    )
