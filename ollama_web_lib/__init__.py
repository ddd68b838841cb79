from __future__ import annotations

from .config import BridgeSettings, ConfigError
from .protocol import build_protocol_server, server_factory
from .registry import ToolFailure, ToolRegistry, ToolSuccess, build_web_registry
from .sessions import Session, SessionManager, SessionState
from .transports import BridgeTransport, StdioTransport, StreamableHTTPTransport, build_transport
from .upstream import OllamaWebClient, UpstreamError, UpstreamErrorKind

__all__ = [
    "BridgeSettings",
    "ConfigError",
    "build_protocol_server",
    "server_factory",
    "ToolFailure",
    "ToolRegistry",
    "ToolSuccess",
    "build_web_registry",
    "Session",
    "SessionManager",
    "SessionState",
    "BridgeTransport",
    "StdioTransport",
    "StreamableHTTPTransport",
    "build_transport",
    "OllamaWebClient",
    "UpstreamError",
    "UpstreamErrorKind",
]
