from __future__ import annotations

import logging
import sys
from pathlib import Path

LOGGER_NAME = "ollama_web"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logger(log_path: Path | None = None, level: str | int = logging.INFO) -> logging.Logger:
    """Attach stderr (and optionally file) handlers to the package logger.

    stdout is left alone because the stdio transport speaks the protocol on it.
    Calling this twice keeps the handlers installed by the first call.
    """

    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = []

    file_handler_error: Exception | None = None
    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem issues are diagnostic by nature
            file_handler_error = exc
        else:
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    for handler in handlers:
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    if file_handler_error:
        logger.warning(
            "Falling back to stderr logging because %s could not be opened: %s",
            log_path,
            file_handler_error,
        )

    return logger


def get_logger(suffix: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}")
