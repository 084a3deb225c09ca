import mcp.types as types

from ..dispatch import ToolDispatcher, check_ranking


async def livetrends(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    lang: str | None = None,
    min: int | None = None,
    no_thing: bool | None = None,
    less_sport: bool | None = None,
    topic_id: int | None = None,
) -> types.CallToolResult:
    return await dispatcher.call(
        session_id,
        "/wip/livetrends",
        "GET",
        {
            "lang": lang,
            "min": min,
            "no_thing": no_thing,
            "less_sport": less_sport,
            "topic_id": topic_id,
        },
    )


async def host_folders(
    dispatcher: ToolDispatcher, session_id: str | None, host: str
) -> types.CallToolResult:
    return await dispatcher.call(session_id, "/wip/host/folders", "GET", {"host": host})


async def host_articles(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    ranking: str,
    host: str,
    days: int | None = None,
    lang: str | None = None,
    folder: str | None = None,
) -> types.CallToolResult:
    check_ranking(ranking)
    return await dispatcher.call(
        session_id,
        f"/wip/host/{ranking}_articles",
        "GET",
        {"host": host, "days": days, "lang": lang, "folder": folder},
    )


async def urls_lookup(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    kind: str,
    urls: list[str],
    days: int = -1,
    lang: str = "fr",
) -> types.CallToolResult:
    if kind not in ("entities", "topics"):
        raise ValueError(f"Unknown url lookup: {kind}")
    return await dispatcher.call(
        session_id,
        f"/wip/urls/{kind}",
        "POST",
        {"urls": urls, "days": days, "lang": lang},
    )


async def entity_articles(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    ranking: str,
    entity_id: str,
    days: int | None = None,
    lang: str | None = None,
) -> types.CallToolResult:
    check_ranking(ranking)
    return await dispatcher.call(
        session_id,
        f"/wip/entity/{ranking}_articles",
        "GET",
        {"entity_id": entity_id, "days": days, "lang": lang},
    )


async def entity_related_entities(
    dispatcher: ToolDispatcher,
    session_id: str | None,
    entity_id: str,
    days: int | None = None,
    lang: str | None = None,
) -> types.CallToolResult:
    return await dispatcher.call(
        session_id,
        "/wip/entity/related_entities",
        "GET",
        {"entity_id": entity_id, "days": days, "lang": lang},
    )
