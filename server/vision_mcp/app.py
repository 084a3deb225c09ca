from contextlib import asynccontextmanager
from typing import Any

import mcp.types as types
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .config import settings
from .context import current_session_id
from .dispatch import ToolDispatcher, error_result, json_result
from .errors import InvalidSessionId, MCPError, as_error_payload
from .logging import configure_logging
from .session import BackendError, Resolved, SessionResolver
from .store import create_store
from .telemetry import configure_telemetry, instrument_fastapi
from .tools import beta, partner1, wip
from .vision import VisionClient

try:
    from mcp.server.fastmcp import Context, FastMCP
except ImportError as exc:  # pragma: no cover - runtime guard
    raise RuntimeError(
        "MCP SDK not installed. Install the official MCP Python SDK."
    ) from exc


configure_logging()
configure_telemetry("vision-mcp")

NO_SESSION_ERROR = MCPError(
    "INVALID_SESSION", "This transport did not assign a session id"
)

store = create_store()
vision = VisionClient()
resolver = SessionResolver(store, settings.binding_ttl_seconds)
dispatcher = ToolDispatcher(resolver, vision)

server = FastMCP(
    name="vision-mcp",
    streamable_http_path="/",
    json_response=True,
)
mcp_app = server.streamable_http_app()


@server.tool("auth_set_api_key")
async def auth_set_api_key(api_key: str, ctx: Context) -> types.CallToolResult:
    """Bind a 1492.Vision API key to the current session."""
    try:
        await resolver.bind(current_session_id(ctx), api_key)
    except InvalidSessionId:
        return error_result(NO_SESSION_ERROR)
    except MCPError as exc:
        return error_result(exc)
    return json_result({"status": "bound"})


@server.tool("auth_get_status")
async def auth_get_status(ctx: Context) -> types.CallToolResult:
    """Report whether an API key is bound to the current session."""
    try:
        resolution = await resolver.resolve(current_session_id(ctx))
    except InvalidSessionId:
        return json_result({"authenticated": False})
    if isinstance(resolution, BackendError):
        return error_result(MCPError("STORE_UNAVAILABLE", resolution.message, 503))
    return json_result({"authenticated": isinstance(resolution, Resolved)})


@server.tool("auth_logout")
async def auth_logout(ctx: Context) -> types.CallToolResult:
    """Forget the API key bound to the current session."""
    try:
        await resolver.unbind(current_session_id(ctx))
    except InvalidSessionId:
        return error_result(NO_SESSION_ERROR)
    except MCPError as exc:
        return error_result(exc)
    return json_result({"status": "logged_out"})


@server.tool("system_health")
async def system_health() -> dict[str, Any]:
    return {"status": "ok", "store_ready": store.ready}


@server.tool("beta_test")
async def beta_test(ctx: Context) -> types.CallToolResult:
    """Tool to do simple authenticated test."""
    return await beta.test(dispatcher, current_session_id(ctx))


@server.tool("beta_api_quota")
async def beta_api_quota(ctx: Context) -> types.CallToolResult:
    """Tool returns the user quota (for API calls) remaining for the day."""
    return await beta.api_quota(dispatcher, current_session_id(ctx))


@server.tool("beta_host_batch")
async def beta_host_batch(
    urls: list[str], ctx: Context, days: int = -1, lang: str = "fr"
) -> types.CallToolResult:
    """Tool returns the top 10 hosts with the most articles of the domain given from the urls list."""
    return await beta.host_batch(dispatcher, current_session_id(ctx), urls, days, lang)


@server.tool("beta_entities_bag_list")
async def beta_entities_bag_list(ctx: Context) -> types.CallToolResult:
    """Tool returns the list of entities bags for the user."""
    return await beta.entities_bag_list(dispatcher, current_session_id(ctx))


@server.tool("beta_entities_bag_related_entities")
async def beta_entities_bag_related_entities(
    bag_uuid: str,
    ctx: Context,
    lang: str | None = None,
    extra_entities: bool | None = None,
) -> types.CallToolResult:
    """Tool returns the list of related entities for the given bag."""
    return await beta.entities_bag_related_entities(
        dispatcher, current_session_id(ctx), bag_uuid, lang, extra_entities
    )


@server.tool("beta_entities_bag_latest_articles")
async def beta_entities_bag_latest_articles(
    bag_uuid: str, ctx: Context, days: int | None = None, lang: str | None = None
) -> types.CallToolResult:
    """Tool returns the latest articles for the given bag."""
    return await beta.entities_bag_articles(
        dispatcher, current_session_id(ctx), "latest", bag_uuid, days, lang
    )


@server.tool("beta_entities_bag_best_articles")
async def beta_entities_bag_best_articles(
    bag_uuid: str, ctx: Context, days: int | None = None, lang: str | None = None
) -> types.CallToolResult:
    """Tool returns the best articles for the given bag."""
    return await beta.entities_bag_articles(
        dispatcher, current_session_id(ctx), "best", bag_uuid, days, lang
    )


@server.tool("beta_entities_bag_top_domains")
async def beta_entities_bag_top_domains(
    bag_uuid: str, ctx: Context, days: int | None = None, lang: str | None = None
) -> types.CallToolResult:
    """Tool returns the top 20 domains for the given bag."""
    return await beta.entities_bag_top_domains(
        dispatcher, current_session_id(ctx), bag_uuid, days, lang
    )


@server.tool("wip_livetrends")
async def wip_livetrends(
    ctx: Context,
    lang: str | None = None,
    min: int | None = None,
    no_thing: bool | None = None,
    less_sport: bool | None = None,
    topic_id: int | None = None,
) -> types.CallToolResult:
    """Tool to get livetrends at different importance levels."""
    return await wip.livetrends(
        dispatcher,
        current_session_id(ctx),
        lang=lang,
        min=min,
        no_thing=no_thing,
        less_sport=less_sport,
        topic_id=topic_id,
    )


@server.tool("wip_host_folders")
async def wip_host_folders(host: str, ctx: Context) -> types.CallToolResult:
    """Tool returns the folders for the given host."""
    return await wip.host_folders(dispatcher, current_session_id(ctx), host)


@server.tool("wip_host_latest_articles")
async def wip_host_latest_articles(
    host: str,
    ctx: Context,
    days: int | None = None,
    lang: str | None = None,
    folder: str | None = None,
) -> types.CallToolResult:
    """Tool returns the latest articles for the given host."""
    return await wip.host_articles(
        dispatcher, current_session_id(ctx), "latest", host, days, lang, folder
    )


@server.tool("wip_host_best_articles")
async def wip_host_best_articles(
    host: str,
    ctx: Context,
    days: int | None = None,
    lang: str | None = None,
    folder: str | None = None,
) -> types.CallToolResult:
    """Tool returns the best articles for the given host."""
    return await wip.host_articles(
        dispatcher, current_session_id(ctx), "best", host, days, lang, folder
    )


@server.tool("wip_urls_entities")
async def wip_urls_entities(
    urls: list[str], ctx: Context, days: int = -1, lang: str = "fr"
) -> types.CallToolResult:
    """Tool returns the entities for the given urls (max 50 per call)."""
    return await wip.urls_lookup(
        dispatcher, current_session_id(ctx), "entities", urls, days, lang
    )


@server.tool("wip_urls_topics")
async def wip_urls_topics(
    urls: list[str], ctx: Context, days: int = -1, lang: str = "fr"
) -> types.CallToolResult:
    """Tool returns the topics for the given urls (max 50 per call)."""
    return await wip.urls_lookup(
        dispatcher, current_session_id(ctx), "topics", urls, days, lang
    )


@server.tool("wip_entity_latest_articles")
async def wip_entity_latest_articles(
    entity_id: str, ctx: Context, days: int | None = None, lang: str | None = None
) -> types.CallToolResult:
    """Tool returns the latest articles for the given entity."""
    return await wip.entity_articles(
        dispatcher, current_session_id(ctx), "latest", entity_id, days, lang
    )


@server.tool("wip_entity_best_articles")
async def wip_entity_best_articles(
    entity_id: str, ctx: Context, days: int | None = None, lang: str | None = None
) -> types.CallToolResult:
    """Tool returns the best articles for the given entity."""
    return await wip.entity_articles(
        dispatcher, current_session_id(ctx), "best", entity_id, days, lang
    )


@server.tool("wip_entity_related_entities")
async def wip_entity_related_entities(
    entity_id: str, ctx: Context, days: int | None = None, lang: str | None = None
) -> types.CallToolResult:
    """Tool returns the related entities for the given entity."""
    return await wip.entity_related_entities(
        dispatcher, current_session_id(ctx), entity_id, days, lang
    )


@server.tool("partner1_api_quota")
async def partner1_api_quota(ctx: Context) -> types.CallToolResult:
    """Tool query the remaining daily quota and monthly quota used."""
    return await partner1.api_quota(dispatcher, current_session_id(ctx))


@server.tool("partner1_host_batch_simple")
async def partner1_host_batch_simple(
    urls: list[str], ctx: Context
) -> types.CallToolResult:
    """Tool batch query a list of urls or domains for inclusion of the domain in the db, all times, last 30 days and last 7 days."""
    return await partner1.host_batch_simple(dispatcher, current_session_id(ctx), urls)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    await store.connect()
    try:
        async with server.session_manager.run():
            yield
    finally:
        await store.close()
        await vision.close()


app = FastAPI(lifespan=lifespan)


@app.exception_handler(MCPError)
async def handle_mcp_error(_, exc: MCPError):
    return JSONResponse(status_code=exc.status, content=as_error_payload(exc))


app.mount("/mcp", mcp_app)
instrument_fastapi(app)
