import httpx
import pytest

from ollama_web_lib.upstream import REQUEST_TIMEOUT, UpstreamError, UpstreamErrorKind
from tests._fakes import FETCH_PAYLOAD, SEARCH_PAYLOAD


@pytest.mark.anyio
async def test_search_posts_query_with_bearer_credential(web_client, upstream):
    result = await web_client.search("  llamas ")

    assert result == SEARCH_PAYLOAD
    assert len(upstream.requests) == 1
    request = upstream.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://ollama.com/api/web_search"
    assert request.headers["authorization"] == "Bearer test-api-key"
    assert upstream.payloads() == [{"query": "llamas", "max_results": 5}]


@pytest.mark.anyio
async def test_fetch_sends_coerced_url(web_client, upstream):
    result = await web_client.fetch("openai.com")

    assert result == FETCH_PAYLOAD
    assert upstream.payloads() == [{"url": "https://openai.com"}]


def test_client_uses_fixed_timeout(web_client):
    assert web_client.timeout == REQUEST_TIMEOUT == 15.0


@pytest.mark.anyio
async def test_status_error_carries_status_and_body(web_client, upstream):
    upstream.respond("/api/web_search", lambda request: httpx.Response(503, text="upstream overloaded"))

    with pytest.raises(UpstreamError) as excinfo:
        await web_client.search("llamas")

    error = excinfo.value
    assert error.kind is UpstreamErrorKind.RESPONSE
    assert error.status == 503
    assert "upstream overloaded" in error.message
    assert "status 503" in error.message


@pytest.mark.anyio
async def test_network_failure_has_no_status(web_client, upstream):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.respond("/api/web_fetch", refuse)

    with pytest.raises(UpstreamError) as excinfo:
        await web_client.fetch("https://example.com")

    error = excinfo.value
    assert error.kind is UpstreamErrorKind.NO_RESPONSE
    assert error.status is None
    assert error.message == "No response received from Ollama API."


@pytest.mark.anyio
async def test_timeout_is_reported_as_no_response(web_client, upstream):
    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    upstream.respond("/api/web_search", slow)

    with pytest.raises(UpstreamError) as excinfo:
        await web_client.search("llamas")

    assert excinfo.value.kind is UpstreamErrorKind.NO_RESPONSE
    assert excinfo.value.status is None
    assert "timed out after 15s" in excinfo.value.message


@pytest.mark.anyio
async def test_malformed_body_is_a_response_error_without_status(web_client, upstream):
    upstream.respond("/api/web_search", lambda request: httpx.Response(200, content=b"<html>oops</html>"))

    with pytest.raises(UpstreamError) as excinfo:
        await web_client.search("llamas")

    assert excinfo.value.kind is UpstreamErrorKind.RESPONSE
    assert excinfo.value.status is None
    assert "malformed body" in excinfo.value.message


@pytest.mark.anyio
async def test_unexpected_shape_is_rejected(web_client, upstream):
    upstream.respond("/api/web_fetch", lambda request: httpx.Response(200, json={"title": "missing content"}))

    with pytest.raises(UpstreamError) as excinfo:
        await web_client.fetch("example.com")

    assert excinfo.value.kind is UpstreamErrorKind.RESPONSE
    assert "unexpected payload shape" in excinfo.value.message


@pytest.mark.anyio
async def test_extra_fields_are_preserved_and_optional_fields_not_invented(web_client, upstream):
    upstream.respond(
        "/api/web_fetch",
        lambda request: httpx.Response(200, json={"content": "body", "fetched_at": "2026-01-01"}),
    )

    result = await web_client.fetch("example.com")

    assert result == {"content": "body", "fetched_at": "2026-01-01"}


@pytest.mark.anyio
@pytest.mark.parametrize(("query", "max_results"), [("", 5), ("llamas", 0), ("llamas", 21)])
async def test_invalid_arguments_fail_before_sending(web_client, upstream, query, max_results):
    with pytest.raises(UpstreamError) as excinfo:
        await web_client.search(query, max_results)

    assert excinfo.value.kind is UpstreamErrorKind.CLIENT
    assert excinfo.value.status is None
    assert upstream.requests == []
