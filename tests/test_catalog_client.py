"""Tests for services/catalog_client.py — HTTP client for the catalog service."""

import json

import httpx
import pytest
from unittest.mock import MagicMock, patch

from errors import APIError, HTTPError, RequestValidationError
from services.catalog_client import CatalogClient, get_catalog_client


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """Create a fresh CatalogClient for each test (not the global singleton)."""
    with patch("services.catalog_client.get_settings") as mock_settings:
        s = MagicMock()
        s.matrixflow_base_url = "https://api.example.com/"
        s.matrixflow_api_key = "test-key"
        s.matrixflow_timeout = 10
        s.matrixflow_user_agent = "matrixflow-sdk-python/0.1.0"
        mock_settings.return_value = s
        yield CatalogClient()


def _envelope(data=None, code=0, msg="success", request_id="rid-1"):
    return {"code": code, "msg": msg, "request_id": request_id, "data": data}


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_base_url_from_settings(client):
    assert client.base_url == "https://api.example.com"
    assert client.timeout == 10


def test_base_headers(client):
    headers = client._base_headers()
    assert headers["X-API-Key"] == "test-key"
    assert headers["User-Agent"] == "matrixflow-sdk-python/0.1.0"


def test_explicit_arguments_override_settings():
    c = CatalogClient(
        "https://other.example.com",
        "k",
        timeout=5,
        user_agent="my-app/1.0",
        default_headers={"X-Tenant": "t1"},
    )
    assert c.base_url == "https://other.example.com"
    assert c.timeout == 5
    headers = c._base_headers()
    assert headers["User-Agent"] == "my-app/1.0"
    assert headers["X-Tenant"] == "t1"


def test_blank_base_url_rejected():
    with pytest.raises(RequestValidationError, match="baseURL is required"):
        CatalogClient("  ", "key")


def test_blank_api_key_rejected():
    with pytest.raises(RequestValidationError, match="apiKey is required"):
        CatalogClient("https://api.example.com", "")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_creates_http_client(client):
    await client.start()
    assert client._http is not None
    await client.close()


@pytest.mark.asyncio
async def test_close_sets_http_none(client):
    await client.start()
    await client.close()
    assert client._http is None
    await client.close()


@pytest.mark.asyncio
async def test_async_context_manager():
    async with CatalogClient("https://api.example.com", "k") as c:
        assert c._http is not None
    assert c._http is None


@pytest.mark.asyncio
async def test_ensure_started_raises_without_start(client):
    with pytest.raises(RuntimeError, match="not started"):
        client._ensure_started()


# ---------------------------------------------------------------------------
# post_json with a mock transport
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_post_json_returns_envelope_data(catalog_client):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json=_envelope({"id": "cat-1"}))

    c = await catalog_client(handler)
    result = await c.post_json("/catalog/create", {"name": "sales"})

    assert result == {"id": "cat-1"}
    request = seen["request"]
    assert request.method == "POST"
    assert request.url.path == "/catalog/create"
    assert json.loads(request.content) == {"name": "sales"}
    assert request.headers["X-API-Key"] == "test-api-key"


@pytest.mark.asyncio
async def test_post_json_call_options(catalog_client):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json=_envelope())

    c = await catalog_client(handler)
    result = await c.post_json(
        "log/user",
        headers={"X-Custom": "v"},
        params={"page": 1},
        request_id=" trace-42 ",
    )

    assert result == {}
    request = seen["request"]
    assert request.url.path == "/log/user"
    assert request.url.params["page"] == "1"
    assert request.headers["X-Custom"] == "v"
    assert request.headers["X-Request-ID"] == "trace-42"


@pytest.mark.asyncio
async def test_post_json_non_2xx_raises_http_error(catalog_client):
    c = await catalog_client(lambda request: httpx.Response(502, content=b"bad gateway"))

    with pytest.raises(HTTPError) as exc_info:
        await c.post_json("/catalog/create", {})

    assert exc_info.value.status_code == 502
    assert exc_info.value.body == b"bad gateway"
    assert "status=502 body=bad gateway" in str(exc_info.value)


@pytest.mark.asyncio
async def test_post_json_envelope_error_raises_api_error(catalog_client):
    c = await catalog_client(
        lambda request: httpx.Response(
            200, json=_envelope(code="ErrNotFound", msg="catalog missing", request_id="rid-9"),
        )
    )

    with pytest.raises(APIError) as exc_info:
        await c.post_json("/catalog/info", {"id": "x"})

    err = exc_info.value
    assert err.code == "ErrNotFound"
    assert err.message == "catalog missing"
    assert err.request_id == "rid-9"
    assert err.http_status == 200


@pytest.mark.asyncio
async def test_post_json_invalid_envelope(catalog_client):
    c = await catalog_client(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(APIError) as exc_info:
        await c.post_json("/catalog/info")
    assert exc_info.value.code == "ErrDecode"


@pytest.mark.asyncio
async def test_send_raw_leaves_body_unread(catalog_client):
    async def body():
        yield b"pay"
        yield b"load"

    c = await catalog_client(lambda request: httpx.Response(200, content=body()))

    response = await c.send_raw("POST", "/stream")
    try:
        assert not response.is_closed
        assert not response.is_stream_consumed
        assert await response.aread() == b"payload"
    finally:
        await response.aclose()


@pytest.mark.asyncio
async def test_health_check(catalog_client):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/healthz"
        return httpx.Response(200, json={"status": "ok"})

    c = await catalog_client(handler)
    status = await c.health_check()
    assert status.status == "ok"


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

def test_get_catalog_client_singleton():
    import services.catalog_client as mod
    mod._client = None  # reset
    with patch("services.catalog_client.get_settings") as mock_settings:
        s = MagicMock()
        s.matrixflow_base_url = "https://api.example.com"
        s.matrixflow_api_key = "k"
        s.matrixflow_timeout = 10
        s.matrixflow_user_agent = "ua"
        mock_settings.return_value = s
        c1 = get_catalog_client()
        c2 = get_catalog_client()
    assert c1 is c2
    mod._client = None  # cleanup
