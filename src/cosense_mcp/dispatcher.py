"""Tool dispatch: one tool name and argument mapping in, one response out.

Every call completes with a ToolResponse. Domain failures and unexpected
exceptions become error reports with is_error set; nothing is raised to the
caller.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from . import core
from .client import PageStore
from .config import Settings
from .errors import CosenseError, ErrorCode, ValidationError
from .models import ToolResponse
from .report import Report

log = logging.getLogger(__name__)

Handler = Callable[[Settings, PageStore, Mapping[str, Any]], Awaitable[Report]]


# ─────────────────────────────────────────────────────────────────────────────
# Argument coercion
# ─────────────────────────────────────────────────────────────────────────────


def _required_str(arguments: Mapping[str, Any], name: str) -> str:
    value = arguments.get(name)
    if value is None:
        raise ValidationError(f"Missing required argument: {name}")
    return str(value)


def _optional_str(arguments: Mapping[str, Any], name: str) -> str | None:
    value = arguments.get(name)
    if value is None or value == "":
        return None
    return str(value)


def _optional_int(arguments: Mapping[str, Any], name: str) -> int | None:
    value = arguments.get(name)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Argument {name} must be a number")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Argument {name} must be a number") from e


def _optional_bool(arguments: Mapping[str, Any], name: str) -> bool:
    value = arguments.get(name)
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _tag_list(arguments: Mapping[str, Any]) -> list[str]:
    tags = arguments.get("tags")
    if tags is None:
        return []
    if isinstance(tags, str):
        return [tags]
    if not isinstance(tags, (list, tuple)):
        raise ValidationError("tags must be an array of strings")
    return [str(tag) for tag in tags]


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────


async def _list_pages(settings: Settings, store: PageStore, arguments: Mapping[str, Any]) -> Report:
    return await core.list_pages(
        settings,
        store,
        sort=_optional_str(arguments, "sort"),
        limit=_optional_int(arguments, "limit"),
        skip=_optional_int(arguments, "skip"),
        exclude_pinned=_optional_bool(arguments, "excludePinned"),
    )


async def _get_page(settings: Settings, store: PageStore, arguments: Mapping[str, Any]) -> Report:
    return await core.get_page(settings, store, _required_str(arguments, "pageTitle"))


async def _search_pages(settings: Settings, store: PageStore, arguments: Mapping[str, Any]) -> Report:
    return await core.search_pages(settings, store, _required_str(arguments, "query"))


async def _search_by_tags(settings: Settings, store: PageStore, arguments: Mapping[str, Any]) -> Report:
    return await core.search_by_tags(settings, store, _tag_list(arguments))


async def _search_with_date_filter(
    settings: Settings, store: PageStore, arguments: Mapping[str, Any]
) -> Report:
    return await core.search_with_date_filter(
        settings,
        store,
        date_from=_optional_str(arguments, "from"),
        date_to=_optional_str(arguments, "to"),
        search_type=_optional_str(arguments, "searchType"),
    )


async def _search_with_regex(settings: Settings, store: PageStore, arguments: Mapping[str, Any]) -> Report:
    return await core.search_with_regex(
        settings,
        store,
        _required_str(arguments, "pattern"),
        _optional_str(arguments, "flags"),
    )


async def _get_backlinks(settings: Settings, store: PageStore, arguments: Mapping[str, Any]) -> Report:
    return await core.get_backlinks(settings, store, _required_str(arguments, "title"))


HANDLERS: dict[str, Handler] = {
    "list_pages": _list_pages,
    "get_page": _get_page,
    "search_pages": _search_pages,
    "search_by_tags": _search_by_tags,
    "search_with_date_filter": _search_with_date_filter,
    "search_with_regex": _search_with_regex,
    "get_backlinks": _get_backlinks,
}


# ─────────────────────────────────────────────────────────────────────────────
# Error context
# ─────────────────────────────────────────────────────────────────────────────


def error_context(settings: Settings, tool_name: str, arguments: Mapping[str, Any]) -> dict[str, str]:
    """Fields identifying what a failed call was about.

    Values are always strings. Arguments that cannot be described leave only
    the Project field.
    """
    try:
        return {"Project": settings.project, **_argument_context(tool_name, arguments)}
    except (ValidationError, TypeError, ValueError):
        log.debug("Could not describe arguments of %s", tool_name)
        return {"Project": settings.project}


def _argument_context(tool_name: str, arguments: Mapping[str, Any]) -> dict[str, str]:
    context: dict[str, str] = {}

    if tool_name == "get_page":
        context["Page"] = str(arguments.get("pageTitle"))
    elif tool_name == "get_backlinks":
        context["Page"] = str(arguments.get("title"))
    elif tool_name == "search_pages":
        context["Query"] = str(arguments.get("query"))
    elif tool_name == "search_by_tags":
        context["Tags"] = ", ".join(_tag_list(arguments)) or "none"
    elif tool_name == "search_with_date_filter":
        start = arguments.get("from") or "any"
        end = arguments.get("to") or "any"
        context["Date range"] = f"{start} to {end}"
    elif tool_name == "search_with_regex":
        context["Pattern"] = str(arguments.get("pattern"))
        context["Flags"] = str(arguments.get("flags") or "none")

    return context


# ─────────────────────────────────────────────────────────────────────────────
# Dispatch
# ─────────────────────────────────────────────────────────────────────────────


async def run_tool(
    settings: Settings,
    tool_name: str,
    arguments: Mapping[str, Any] | None,
    store: PageStore,
) -> Report:
    """Run a tool and return its report, converting failures to error reports."""
    arguments = arguments or {}

    handler = HANDLERS.get(tool_name)
    if handler is None:
        return Report.error(
            tool_name,
            "Unknown tool requested",
            {"Tool": tool_name},
            code=ErrorCode.UNKNOWN_TOOL.value,
        )

    try:
        return await handler(settings, store, arguments)
    except CosenseError as e:
        log.info("%s failed [%s]: %s", tool_name, e.code.value, e.message)
        return Report.error(
            tool_name,
            e.message,
            error_context(settings, tool_name, arguments),
            code=e.code.value,
        )
    except Exception as e:
        log.exception("Unexpected error in %s", tool_name)
        return Report.error(
            tool_name,
            str(e) or type(e).__name__,
            error_context(settings, tool_name, arguments),
            code=ErrorCode.INTERNAL_ERROR.value,
        )


async def dispatch(
    settings: Settings,
    tool_name: str,
    arguments: Mapping[str, Any] | None,
    store: PageStore,
) -> ToolResponse:
    """Run a tool and wrap its report in the response envelope."""
    report = await run_tool(settings, tool_name, arguments, store)
    return report.to_response()
