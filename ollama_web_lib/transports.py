"""The two ways of exposing the tool registry: stdio and streamable HTTP."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import Protocol

import anyio
import uvicorn
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER
from mcp.shared.message import SessionMessage
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from .auth import BearerAuthMiddleware
from .config import BridgeSettings
from .logs import get_logger
from .protocol import NOTIFICATION_LOGGER, SERVER_NAME, SERVER_VERSION, ServerFactory
from .rpc_errors import internal_error
from .sessions import SessionManager

MCP_PATH = "/mcp"
HEALTH_PATH = "/healthz"
READY_MESSAGE = "Ollama MCP Server ready."

LOGGER = get_logger("transports")


class BridgeTransport(Protocol):
    name: str

    async def serve(self) -> None: ...

    async def close(self) -> None: ...


def ready_notification() -> SessionMessage:
    notification = types.JSONRPCNotification(
        jsonrpc="2.0",
        method="notifications/message",
        params={"level": "info", "logger": NOTIFICATION_LOGGER, "data": READY_MESSAGE},
    )
    return SessionMessage(types.JSONRPCMessage(notification))


class StdioTransport:
    """One implicit session over stdin/stdout for the life of the process."""

    name = "stdio"

    def __init__(self, server_factory: ServerFactory) -> None:
        self._server_factory = server_factory
        self._cancel_scope: anyio.CancelScope | None = None

    async def serve(self) -> None:
        async with stdio_server() as (read_stream, write_stream):
            await self.serve_streams(read_stream, write_stream)

    async def serve_streams(
        self,
        read_stream: MemoryObjectReceiveStream[SessionMessage | Exception],
        write_stream: MemoryObjectSendStream[SessionMessage],
    ) -> None:
        server = self._server_factory()
        with anyio.CancelScope() as scope:
            self._cancel_scope = scope
            try:
                await write_stream.send(ready_notification())
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                LOGGER.warning("stdout closed before the ready notification was sent")
                return
            LOGGER.info("Serving MCP over stdio")
            await server.run(read_stream, write_stream, server.create_initialization_options())
        self._cancel_scope = None
        LOGGER.info("stdio transport terminated")

    async def close(self) -> None:
        if self._cancel_scope is not None:
            self._cancel_scope.cancel()


class MCPEndpoint:
    """ASGI endpoint for ``/mcp`` that delegates to the session manager."""

    def __init__(self, session_manager: SessionManager) -> None:
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        started = False

        async def _send(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.session_manager.handle_request(scope, receive, _send)
        except Exception:
            LOGGER.exception("Error handling MCP %s request", scope.get("method"))
            if not started:
                await internal_error()(scope, receive, send)


class StreamableHTTPTransport:
    """Multi-session HTTP transport: POST requests, GET event stream, DELETE teardown."""

    name = "streamable-http"

    def __init__(self, server_factory: ServerFactory, settings: BridgeSettings) -> None:
        self.settings = settings
        self.session_manager = SessionManager(server_factory, json_response=settings.json_response)
        self.app = self.build_app()
        self._server: uvicorn.Server | None = None

    def build_app(self) -> Starlette:
        @contextlib.asynccontextmanager
        async def lifespan(_: Starlette) -> AsyncIterator[None]:
            async with self.session_manager.run():
                yield

        middleware = []
        if self.settings.cors_origins:
            middleware.append(
                Middleware(
                    CORSMiddleware,
                    allow_origins=list(self.settings.cors_origins),
                    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
                    allow_headers=["*"],
                    expose_headers=[MCP_SESSION_ID_HEADER],
                )
            )
        middleware.append(
            Middleware(
                BearerAuthMiddleware,
                token=self.settings.auth_token,
                enabled=self.settings.auth_enabled,
                exempt_paths=(HEALTH_PATH,),
            )
        )

        routes = [
            Route(MCP_PATH, endpoint=MCPEndpoint(self.session_manager), methods=["GET", "POST", "DELETE"]),
            Route(HEALTH_PATH, endpoint=healthz, methods=["GET"]),
        ]
        return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)

    async def serve(self) -> None:
        config = uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_level=self.settings.log_level.lower(),
        )
        self._server = uvicorn.Server(config)
        LOGGER.info(
            "MCP Streamable HTTP server listening on http://%s:%s%s (auth %s)",
            self.settings.host,
            self.settings.port,
            MCP_PATH,
            "enabled" if self.settings.auth_enabled else "DISABLED",
        )
        if not self.settings.auth_enabled:
            LOGGER.warning("Authentication is disabled; only use this for local development.")
        elif self.settings.uses_default_token:
            LOGGER.warning("Using the default dev token. Set MCP_AUTH_TOKEN for production.")
        await self._server.serve()

    async def close(self) -> None:
        if self._server is not None:
            self._server.should_exit = True


async def healthz(_: Request) -> Response:
    return JSONResponse({"status": "ok", "server": SERVER_NAME, "version": SERVER_VERSION})


def build_transport(settings: BridgeSettings, server_factory: ServerFactory) -> BridgeTransport:
    if settings.transport == "stdio":
        return StdioTransport(server_factory)
    return StreamableHTTPTransport(server_factory, settings)
