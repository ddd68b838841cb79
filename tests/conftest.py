import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402
import pytest  # noqa: E402

from ollama_web_lib.registry import build_web_registry  # noqa: E402
from ollama_web_lib.upstream import OllamaWebClient  # noqa: E402
from tests._fakes import FakeOllama  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_bridge_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate config env between tests."""

    for var in (
        "OLLAMA_API_KEY",
        "OLLAMA_API_BASE",
        "PORT",
        "HOST",
        "MCP_AUTH_ENABLED",
        "MCP_AUTH_TOKEN",
        "OLLAMA_WEB_TRANSPORT",
        "OLLAMA_WEB_JSON_RESPONSE",
        "OLLAMA_WEB_CORS_ORIGINS",
        "OLLAMA_WEB_LOG_FILE",
        "OLLAMA_WEB_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def upstream() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def web_client(upstream: FakeOllama) -> OllamaWebClient:
    return OllamaWebClient("test-api-key", transport=httpx.MockTransport(upstream))


@pytest.fixture
def registry(web_client: OllamaWebClient):
    return build_web_registry(web_client)
