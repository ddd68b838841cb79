"""MCP server binding for the tool registry.

One low-level ``Server`` is built per session. Tool failures coming back from
the registry are turned into JSON-RPC errors here and nowhere else.
"""

from __future__ import annotations

from typing import Any, Callable

import anyio
from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError

from .logs import get_logger
from .registry import ToolDefinition, ToolFailure, ToolRegistry

SERVER_NAME = "Ollama Web Tools"
SERVER_VERSION = "1.0.0"
NOTIFICATION_LOGGER = "ollama_web.tools"

LOG_LEVELS: tuple[str, ...] = (
    "debug",
    "info",
    "notice",
    "warning",
    "error",
    "critical",
    "alert",
    "emergency",
)

LOGGER = get_logger("protocol")

ServerFactory = Callable[[], Server]


def to_mcp_error(failure: ToolFailure) -> McpError:
    return McpError(types.ErrorData(code=failure.code, message=failure.message, data=failure.data))


def to_tool(definition: ToolDefinition) -> types.Tool:
    return types.Tool(
        name=definition.name,
        title=definition.title,
        description=definition.description,
        inputSchema=definition.schema.json_schema,
    )


def _level_enabled(level: str, threshold: str) -> bool:
    return LOG_LEVELS.index(level) >= LOG_LEVELS.index(threshold)


def build_protocol_server(registry: ToolRegistry, *, default_log_level: str = "info") -> Server:
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)
    log_state = {"level": default_log_level}

    async def notify(level: str, data: Any) -> None:
        if not _level_enabled(level, log_state["level"]):
            return
        try:
            context = server.request_context
            await context.session.send_log_message(
                level=level,
                data=data,
                logger=NOTIFICATION_LOGGER,
                related_request_id=context.request_id,
            )
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
            LOGGER.info("Dropped %s notification on a closed channel: %s", level, exc)
        except LookupError:
            LOGGER.debug("No request context for %s notification", level)

    @server.list_tools()
    async def _list_tools() -> list[types.Tool]:
        return [to_tool(definition) for definition in registry.definitions()]

    @server.set_logging_level()
    async def _set_logging_level(level: types.LoggingLevel) -> None:
        log_state["level"] = level

    async def _call_tool(req: types.CallToolRequest) -> types.ServerResult:
        name = req.params.name
        outcome = await registry.invoke(name, req.params.arguments)
        if isinstance(outcome, ToolFailure):
            await notify("error", {"tool": name, "code": outcome.code, "message": outcome.message})
            raise to_mcp_error(outcome)
        await notify("info", {"tool": name, "status": "ok"})
        return types.ServerResult(
            types.CallToolResult(
                content=[types.TextContent(type="text", text=outcome.render())],
                isError=False,
            )
        )

    # Registered directly so McpError reaches the client as a JSON-RPC error
    # instead of the decorator's isError result.
    server.request_handlers[types.CallToolRequest] = _call_tool
    return server


def server_factory(registry: ToolRegistry) -> ServerFactory:
    def _factory() -> Server:
        return build_protocol_server(registry)

    return _factory
