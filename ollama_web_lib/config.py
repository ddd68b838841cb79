from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

DEFAULT_API_BASE = "https://ollama.com/api"
DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 3000
DEFAULT_AUTH_TOKEN = "dev-token-change-me"
DEFAULT_TRANSPORT = "stdio"
DEFAULT_LOG_LEVEL = "INFO"

TRANSPORTS = ("stdio", "streamable-http")

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when the process environment cannot produce usable settings."""


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


def _is_falsy(value: str) -> bool:
    return value.strip().lower() in _FALSY


def _parse_port(raw: str) -> int:
    try:
        port = int(raw)
    except ValueError as exc:
        raise ConfigError(f"PORT must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ConfigError(f"PORT must be between 1 and 65535, got {port}")
    return port


def _split_origins(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class BridgeSettings:
    api_key: str
    api_base: str = DEFAULT_API_BASE
    host: str = DEFAULT_HTTP_HOST
    port: int = DEFAULT_HTTP_PORT
    auth_enabled: bool = True
    auth_token: str = DEFAULT_AUTH_TOKEN
    transport: str = DEFAULT_TRANSPORT
    json_response: bool = False
    cors_origins: tuple[str, ...] = ()
    log_path: Path | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def uses_default_token(self) -> bool:
        return self.auth_token == DEFAULT_AUTH_TOKEN

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeSettings:
        """Read settings from ``environ`` (defaults to ``os.environ``).

        ``OLLAMA_API_KEY`` is the only required value; everything else falls
        back to a loopback, auth-enabled development setup.
        """

        env = os.environ if environ is None else environ

        api_key = (env.get("OLLAMA_API_KEY") or "").strip()
        if not api_key:
            raise ConfigError("OLLAMA_API_KEY is required.")

        transport = (env.get("OLLAMA_WEB_TRANSPORT") or DEFAULT_TRANSPORT).strip().lower()
        if transport not in TRANSPORTS:
            raise ConfigError(
                f"OLLAMA_WEB_TRANSPORT must be one of {', '.join(TRANSPORTS)}, got {transport!r}"
            )

        auth_flag = env.get("MCP_AUTH_ENABLED")
        log_file = (env.get("OLLAMA_WEB_LOG_FILE") or "").strip()

        return cls(
            api_key=api_key,
            api_base=(env.get("OLLAMA_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            host=env.get("HOST") or DEFAULT_HTTP_HOST,
            port=_parse_port(env.get("PORT") or str(DEFAULT_HTTP_PORT)),
            auth_enabled=not (auth_flag is not None and _is_falsy(auth_flag)),
            auth_token=env.get("MCP_AUTH_TOKEN") or DEFAULT_AUTH_TOKEN,
            transport=transport,
            json_response=_is_truthy(env.get("OLLAMA_WEB_JSON_RESPONSE", "")),
            cors_origins=_split_origins(env.get("OLLAMA_WEB_CORS_ORIGINS", "")),
            log_path=Path(log_file).expanduser() if log_file else None,
            log_level=(env.get("OLLAMA_WEB_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )
