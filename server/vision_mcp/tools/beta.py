import mcp.types as types

from ..dispatch import ToolDispatcher, check_ranking


async def test(dispatcher: ToolDispatcher, session_id: str | None) -> types.CallToolResult:
    return await dispatcher.call(session_id, "/beta/test")


async def api_quota(
    dispatcher: ToolDispatcher, session_id: str | None
) -> types.CallToolResult:
    return await dispatcher.call(session_id, "/beta/api_quota")


async def host_batch(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    urls: list[str],
    days: int = -1,
    lang: str = "fr",
) -> types.CallToolResult:
    return await dispatcher.call(
        session_id,
        "/beta/host_batch",
        "POST",
        {"urls": urls, "days": days, "lang": lang},
    )


async def entities_bag_list(
    dispatcher: ToolDispatcher, session_id: str | None
) -> types.CallToolResult:
    return await dispatcher.call(session_id, "/beta/entities_bag/list")


async def entities_bag_related_entities(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    bag_uuid: str,
    lang: str | None = None,
    extra_entities: bool | None = None,
) -> types.CallToolResult:
    return await dispatcher.call(
        session_id,
        "/beta/entities_bag/related_entities",
        "GET",
        {"bag_uuid": bag_uuid, "lang": lang, "extra_entities": extra_entities},
    )


async def entities_bag_articles(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    ranking: str,
    bag_uuid: str,
    days: int | None = None,
    lang: str | None = None,
) -> types.CallToolResult:
    check_ranking(ranking)
    return await dispatcher.call(
        session_id,
        f"/beta/entities_bag/{ranking}_articles",
        "GET",
        {"bag_uuid": bag_uuid, "days": days, "lang": lang},
    )


async def entities_bag_top_domains(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    bag_uuid: str,
    days: int | None = None,
    lang: str | None = None,
) -> types.CallToolResult:
    return await dispatcher.call(
        session_id,
        "/beta/entities_bag/top_domains",
        "GET",
        {"bag_uuid": bag_uuid, "days": days, "lang": lang},
    )
