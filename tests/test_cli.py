import logging

import pytest

from ollama_web_lib import cli
from ollama_web_lib.logs import LOGGER_NAME, configure_logger
from ollama_web_lib.transports import StdioTransport, StreamableHTTPTransport


@pytest.fixture
def clean_logger():
    logger = logging.getLogger(LOGGER_NAME)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def served(monkeypatch):
    launched = []

    def fake_run(serve):
        launched.append(serve.__self__)

    monkeypatch.setattr(cli.anyio, "run", fake_run)
    return launched


def test_missing_api_key_exits_with_message(clean_logger, served):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert "Failed to start Ollama MCP server" in str(excinfo.value.code)
    assert "OLLAMA_API_KEY" in str(excinfo.value.code)
    assert served == []


def test_defaults_to_stdio(monkeypatch, clean_logger, served):
    monkeypatch.setenv("OLLAMA_API_KEY", "k")

    cli.main([])

    assert len(served) == 1
    assert isinstance(served[0], StdioTransport)


def test_flags_override_environment(monkeypatch, clean_logger, served):
    monkeypatch.setenv("OLLAMA_API_KEY", "k")
    monkeypatch.setenv("PORT", "3000")

    cli.main(["--transport", "streamable-http", "--host", "0.0.0.0", "--port", "8123"])

    transport = served[0]
    assert isinstance(transport, StreamableHTTPTransport)
    assert (transport.settings.host, transport.settings.port) == ("0.0.0.0", 8123)


def test_log_file_receives_records(tmp_path, clean_logger):
    log_path = tmp_path / "logs" / "bridge.log"

    logger = configure_logger(log_path, "DEBUG")
    logging.getLogger(f"{LOGGER_NAME}.sessions").debug("session %s closed", "abc")
    for handler in logger.handlers:
        handler.flush()

    assert "session abc closed" in log_path.read_text(encoding="utf-8")
    assert configure_logger(log_path) is logger
    assert len(logger.handlers) == 2
