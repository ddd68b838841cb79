from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Union

from mcp import types
from mcp.shared.exceptions import McpError

from .logs import get_logger
from .upstream import OllamaWebClient, UpstreamError
from .validation import (
    FETCH_INPUT_SCHEMA,
    SEARCH_INPUT_SCHEMA,
    FetchArguments,
    Invalid,
    SearchArguments,
    Validation,
    validate_fetch_arguments,
    validate_search_arguments,
)

DEFAULT_ERROR_CODE = 500

LOGGER = get_logger("registry")

ToolHandler = Callable[[Any], Awaitable[Any]]


class ToolRegistryError(ValueError):
    """Raised when a tool definition cannot be registered."""


@dataclass(frozen=True)
class ToolSchema:
    json_schema: Dict[str, Any]
    validate: Callable[[Mapping[str, Any] | None], Validation[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    title: str
    description: str
    schema: ToolSchema
    handler: ToolHandler


@dataclass(frozen=True)
class ToolSuccess:
    payload: Any

    def render(self) -> str:
        return json.dumps(self.payload, indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class ToolFailure:
    code: int
    message: str
    data: Any = None


ToolOutcome = Union[ToolSuccess, ToolFailure]


def failure_from_exception(exc: BaseException) -> ToolFailure:
    if isinstance(exc, McpError):
        return ToolFailure(code=exc.error.code, message=exc.error.message, data=exc.error.data)
    if isinstance(exc, UpstreamError):
        return ToolFailure(code=exc.status or DEFAULT_ERROR_CODE, message=exc.message)
    return ToolFailure(code=DEFAULT_ERROR_CODE, message=str(exc) or "Unknown error occurred.")


class ToolRegistry:
    """Fixed set of tools shared by every session."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDefinition] = {}

    def register(
        self,
        name: str,
        *,
        title: str,
        description: str,
        schema: ToolSchema,
        handler: ToolHandler,
    ) -> ToolDefinition:
        if not name:
            raise ToolRegistryError("tools require a non-empty name")
        if name in self._tools:
            raise ToolRegistryError(f"Tool '{name}' is already registered")
        definition = ToolDefinition(
            name=name,
            title=title,
            description=description,
            schema=schema,
            handler=handler,
        )
        self._tools[name] = definition
        return definition

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def definitions(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def invoke(self, name: str, arguments: Mapping[str, Any] | None) -> ToolOutcome:
        definition = self._tools.get(name)
        if definition is None:
            return ToolFailure(code=types.INVALID_PARAMS, message=f"Unknown tool: {name}")

        checked = definition.schema.validate(arguments)
        if isinstance(checked, Invalid):
            return ToolFailure(
                code=types.INVALID_PARAMS,
                message=f"Invalid arguments for tool {name}: {checked.describe()}",
            )

        try:
            payload = await definition.handler(checked.value)
        except Exception as exc:
            failure = failure_from_exception(exc)
            LOGGER.warning("Tool %s failed with code %s: %s", name, failure.code, failure.message)
            return failure
        return ToolSuccess(payload)


def build_web_registry(client: OllamaWebClient) -> ToolRegistry:
    registry = ToolRegistry()

    async def web_search(arguments: SearchArguments) -> Dict[str, Any]:
        return await client.search(arguments.query, arguments.max_results)

    async def web_fetch(arguments: FetchArguments) -> Dict[str, Any]:
        return await client.fetch(arguments.url)

    registry.register(
        "web_search",
        title="Web Search",
        description="Perform a web search using the Ollama web search API.",
        schema=ToolSchema(json_schema=SEARCH_INPUT_SCHEMA, validate=validate_search_arguments),
        handler=web_search,
    )
    registry.register(
        "web_fetch",
        title="Web Fetch",
        description="Fetch raw content from a URL using the Ollama web fetch API.",
        schema=ToolSchema(json_schema=FETCH_INPUT_SCHEMA, validate=validate_fetch_arguments),
        handler=web_fetch,
    )
    return registry
