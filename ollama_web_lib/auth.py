from __future__ import annotations

import secrets
from typing import Iterable

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from .logs import get_logger
from .rpc_errors import forbidden, unauthorized

BEARER_PREFIX = "Bearer "

LOGGER = get_logger("auth")


def extract_bearer_token(headers: Headers) -> str | None:
    header = headers.get("authorization")
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None


class BearerAuthMiddleware:
    """Reject HTTP requests lacking the configured bearer token.

    Runs ahead of routing, so a rejected request never reaches the session
    manager.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        token: str,
        enabled: bool = True,
        exempt_paths: Iterable[str] = (),
    ) -> None:
        self.app = app
        self.enabled = enabled
        self._token = token.encode("utf-8")
        self._exempt = frozenset(exempt_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.enabled or scope["path"] in self._exempt:
            await self.app(scope, receive, send)
            return

        token = extract_bearer_token(Headers(scope=scope))
        if token is None:
            LOGGER.debug("Rejected %s %s: missing bearer token", scope["method"], scope["path"])
            response = unauthorized()
        elif not secrets.compare_digest(token.encode("utf-8"), self._token):
            LOGGER.debug("Rejected %s %s: invalid bearer token", scope["method"], scope["path"])
            response = forbidden()
        else:
            await self.app(scope, receive, send)
            return
        await response(scope, receive, send)
