"""HTTP client for the Ollama web search and web fetch endpoints."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Type

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from .config import DEFAULT_API_BASE
from .logs import get_logger
from .validation import (
    MAX_RESULTS_DEFAULT,
    Invalid,
    validate_fetch_arguments,
    validate_search_arguments,
)

REQUEST_TIMEOUT = 15.0
SEARCH_PATH = "/web_search"
FETCH_PATH = "/web_fetch"

LOGGER = get_logger("upstream")


class UpstreamErrorKind(str, Enum):
    RESPONSE = "response"
    NO_RESPONSE = "no-response"
    CLIENT = "client"


class UpstreamError(RuntimeError):
    """Any failure talking to the Ollama API, normalized to one type."""

    def __init__(
        self,
        message: str,
        *,
        kind: UpstreamErrorKind,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status
        self.body = body

    @property
    def message(self) -> str:
        return str(self)


class SearchHit(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    url: str
    content: str


class SearchResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    results: List[SearchHit]


class FetchResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    content: str
    links: Optional[List[str]] = None


class OllamaWebClient:
    """Single-attempt client: one POST per call, no retries."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    async def search(self, query: str, max_results: int = MAX_RESULTS_DEFAULT) -> Dict[str, Any]:
        checked = validate_search_arguments({"query": query, "max_results": max_results})
        if isinstance(checked, Invalid):
            raise UpstreamError(checked.describe(), kind=UpstreamErrorKind.CLIENT)
        return await self._post(SEARCH_PATH, checked.value.to_payload(), SearchResponse)

    async def fetch(self, url: str) -> Dict[str, Any]:
        checked = validate_fetch_arguments({"url": url})
        if isinstance(checked, Invalid):
            raise UpstreamError(checked.describe(), kind=UpstreamErrorKind.CLIENT)
        return await self._post(FETCH_PATH, checked.value.to_payload(), FetchResponse)

    async def _post(self, path: str, payload: Dict[str, Any], model: Type[BaseModel]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            body = exc.response.text
            LOGGER.warning("Ollama API %s returned %s", path, status)
            raise UpstreamError(
                f"Ollama API responded with status {status}: {body}",
                kind=UpstreamErrorKind.RESPONSE,
                status=status,
                body=body,
            ) from exc
        except httpx.TimeoutException as exc:
            LOGGER.warning("Ollama API %s timed out after %ss", path, self.timeout)
            raise UpstreamError(
                f"No response received from Ollama API (timed out after {self.timeout:g}s).",
                kind=UpstreamErrorKind.NO_RESPONSE,
            ) from exc
        except httpx.TransportError as exc:
            LOGGER.warning("Ollama API %s unreachable: %s", path, exc)
            raise UpstreamError(
                "No response received from Ollama API.",
                kind=UpstreamErrorKind.NO_RESPONSE,
            ) from exc
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise UpstreamError(
                str(exc) or "Unknown error while calling Ollama API.",
                kind=UpstreamErrorKind.CLIENT,
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Ollama API returned a malformed body: {response.text[:200]}",
                kind=UpstreamErrorKind.RESPONSE,
                body=response.text,
            ) from exc

        try:
            parsed = model.model_validate(data)
        except ValidationError as exc:
            raise UpstreamError(
                f"Ollama API returned an unexpected payload shape for {path}: {exc.error_count()} error(s)",
                kind=UpstreamErrorKind.RESPONSE,
                body=response.text,
            ) from exc
        return parsed.model_dump(mode="json", exclude_unset=True)
