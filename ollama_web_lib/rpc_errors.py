"""HTTP-level JSON-RPC error envelopes (auth, session routing, internal)."""

from __future__ import annotations

from http import HTTPStatus
from typing import Dict

from starlette.responses import JSONResponse

AUTH_MISSING = -32001
AUTH_DENIED = -32002
INVALID_SESSION = -32000
INTERNAL_ERROR = -32603

NO_SESSION_MESSAGE = "Bad Request: No valid session ID provided"
INVALID_SESSION_MESSAGE = "Invalid or missing session ID"


def rpc_error_response(
    status_code: int,
    code: int,
    message: str,
    *,
    headers: Dict[str, str] | None = None,
) -> JSONResponse:
    payload = {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": None,
    }
    return JSONResponse(payload, status_code=status_code, headers=headers)


def unauthorized() -> JSONResponse:
    return rpc_error_response(
        HTTPStatus.UNAUTHORIZED,
        AUTH_MISSING,
        "Unauthorized: Missing Bearer token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden() -> JSONResponse:
    return rpc_error_response(HTTPStatus.FORBIDDEN, AUTH_DENIED, "Forbidden: Invalid token")


def bad_session(message: str = INVALID_SESSION_MESSAGE) -> JSONResponse:
    return rpc_error_response(HTTPStatus.BAD_REQUEST, INVALID_SESSION, message)


def internal_error() -> JSONResponse:
    return rpc_error_response(HTTPStatus.INTERNAL_SERVER_ERROR, INTERNAL_ERROR, "Internal server error")
