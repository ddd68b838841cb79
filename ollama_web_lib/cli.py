from __future__ import annotations

import argparse
import dataclasses
import os
from typing import Sequence

import anyio

from .config import TRANSPORTS, BridgeSettings, ConfigError
from .logs import configure_logger
from .protocol import server_factory
from .registry import build_web_registry
from .transports import build_transport
from .upstream import OllamaWebClient


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve Ollama web_search/web_fetch as MCP tools.")
    parser.add_argument("--transport", choices=TRANSPORTS, help="Override OLLAMA_WEB_TRANSPORT")
    parser.add_argument("--host", help="Override HOST for the HTTP transport")
    parser.add_argument("--port", type=int, help="Override PORT for the HTTP transport")
    return parser.parse_args(argv)


def load_settings(args: argparse.Namespace) -> BridgeSettings:
    settings = BridgeSettings.from_env(os.environ)
    overrides = {
        key: value
        for key, value in (("transport", args.transport), ("host", args.host), ("port", args.port))
        if value is not None
    }
    return dataclasses.replace(settings, **overrides) if overrides else settings


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        settings = load_settings(args)
    except ConfigError as exc:
        raise SystemExit(f"Failed to start Ollama MCP server: {exc}") from exc

    logger = configure_logger(settings.log_path, settings.log_level)
    client = OllamaWebClient(settings.api_key, base_url=settings.api_base)
    registry = build_web_registry(client)
    transport = build_transport(settings, server_factory(registry))

    logger.info("Launching transport=%s upstream=%s tools=%d", transport.name, settings.api_base, len(registry))
    try:
        anyio.run(transport.serve)
    except KeyboardInterrupt:  # pragma: no cover - interactive shutdown
        logger.info("Interrupted; shutting down")
    except Exception:  # pragma: no cover - surfaced for operational diagnostics
        logger.exception("Transport %s crashed", transport.name)
        raise
    logger.info("Transport %s terminated", transport.name)


if __name__ == "__main__":  # pragma: no cover - script entry
    main()
