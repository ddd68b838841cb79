"""Session bookkeeping for the streamable HTTP transport.

Every MCP session owns one ``StreamableHTTPServerTransport`` and one protocol
server running in a background task. Sessions are only ever created by an
``initialize`` POST that carries no session id; every other request must name
a live session.
"""

from __future__ import annotations

import contextlib
import json
import time
from collections import OrderedDict
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp import types
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError
from starlette.requests import Request
from starlette.types import Message, Receive, Scope, Send

from .logs import get_logger
from .protocol import ServerFactory
from .rpc_errors import INVALID_SESSION_MESSAGE, NO_SESSION_MESSAGE, bad_session

LOGGER = get_logger("sessions")

# Recently closed ids checked before issuing a new one. Older ids are dropped;
# uuid4 collisions past this window are not a practical concern.
RETIRED_ID_LIMIT = 4096


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class Session:
    session_id: str
    transport: StreamableHTTPServerTransport
    created_at: float = field(default_factory=time.time)
    state: SessionState = SessionState.INITIALIZING


def is_initialize_request(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    try:
        message = types.JSONRPCMessage.model_validate(payload)
    except ValidationError:
        return False
    return isinstance(message.root, types.JSONRPCRequest) and message.root.method == "initialize"


def _replay_body(body: bytes, receive: Receive) -> Receive:
    """Hand the already-read body to the transport, then defer to ``receive``."""

    delivered = False

    async def _receive() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return _receive


class SessionManager:
    """Owns the session-id → transport map for one process.

    The map is only touched from the event loop, so no locking is needed. A
    multi-process deployment would have to move it to a shared store with
    create-if-absent semantics.
    """

    def __init__(
        self,
        server_factory: ServerFactory,
        *,
        json_response: bool = False,
        security_settings: TransportSecuritySettings | None = None,
        id_factory: Callable[[], str] = lambda: uuid4().hex,
        retired_limit: int = RETIRED_ID_LIMIT,
    ) -> None:
        self._server_factory = server_factory
        self.json_response = json_response
        self.security_settings = security_settings
        self._id_factory = id_factory
        self._sessions: Dict[str, Session] = {}
        self._retired: OrderedDict[str, None] = OrderedDict()
        self._retired_limit = retired_limit
        self._task_group: TaskGroup | None = None

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str | None) -> Session | None:
        if session_id is None:
            return None
        session = self._sessions.get(session_id)
        if session is None or session.state is not SessionState.ACTIVE:
            return None
        return session

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        if self._task_group is not None:
            raise RuntimeError("SessionManager is already running")
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            LOGGER.info("Session manager started")
            try:
                yield
            finally:
                LOGGER.info("Session manager shutting down (%d live session(s))", len(self._sessions))
                with anyio.CancelScope(shield=True):
                    for session in list(self._sessions.values()):
                        await self._terminate(session, reason="server shutdown")
                tg.cancel_scope.cancel()
                self._task_group = None

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("Session manager is not running; use SessionManager.run()")

        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if request.method == "POST" and session_id is None:
            await self._handle_new_session(request, scope, send)
            return

        session = self.get(session_id)
        if session is None:
            message = NO_SESSION_MESSAGE if request.method == "POST" else INVALID_SESSION_MESSAGE
            LOGGER.debug("Rejected %s for unknown session %s", request.method, session_id)
            await bad_session(message)(scope, receive, send)
            return

        await session.transport.handle_request(scope, receive, send)
        if request.method == "DELETE" and session.transport.is_terminated:
            self._close(session, reason="terminated by client")

    async def _handle_new_session(self, request: Request, scope: Scope, send: Send) -> None:
        body = await request.body()
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if not is_initialize_request(payload):
            await bad_session(NO_SESSION_MESSAGE)(scope, request.receive, send)
            return

        session_id = self._new_session_id()
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self.json_response,
            security_settings=self.security_settings,
        )
        session = Session(session_id=session_id, transport=transport)
        self._sessions[session.session_id] = session
        LOGGER.info("Session %s initializing", session.session_id)

        assert self._task_group is not None
        await self._task_group.start(self._run_session, session)

        status: Dict[str, int] = {}

        async def _send(message: Message) -> None:
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
            await send(message)

        await session.transport.handle_request(scope, _replay_body(body, request.receive), _send)

        if status.get("code", 500) < 400 and not session.transport.is_terminated:
            if session.state is SessionState.INITIALIZING:
                session.state = SessionState.ACTIVE
                LOGGER.info("Session %s active", session.session_id)
        else:
            await self._terminate(session, reason=f"handshake failed (HTTP {status.get('code')})")

    def _new_session_id(self) -> str:
        while True:
            candidate = self._id_factory()
            if candidate not in self._sessions and candidate not in self._retired:
                return candidate

    async def _run_session(self, session: Session, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        server = self._server_factory()
        async with session.transport.connect() as (read_stream, write_stream):
            task_status.started()
            try:
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                    stateless=False,
                )
            except Exception:
                LOGGER.exception("Session %s crashed", session.session_id)
            finally:
                self._close(session, reason="transport closed")

    async def _terminate(self, session: Session, *, reason: str) -> None:
        if not session.transport.is_terminated:
            await session.transport.terminate()
        self._close(session, reason=reason)

    def _close(self, session: Session, *, reason: str) -> None:
        if session.state is SessionState.CLOSED:
            return
        session.state = SessionState.CLOSED
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
        self._retired[session.session_id] = None
        while len(self._retired) > self._retired_limit:
            self._retired.popitem(last=False)
        LOGGER.info("Session %s closed (%s)", session.session_id, reason)
