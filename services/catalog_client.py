"""HTTP client for the MatrixFlow catalog service.

Wraps ``httpx.AsyncClient`` with:
- base URL construction and API-key auth (``X-API-Key``)
- default headers plus per-call headers / query params / request id
- JSON envelope decoding (``code`` / ``msg`` / ``request_id`` / ``data``)
- raw, unread responses for streaming endpoints
- request timing logs
- connection-pool lifecycle (``start`` / ``close`` or ``async with``)

Requests are not retried; retry policy is left to the caller.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping

import httpx

from config.settings import get_settings
from errors import APIError, HTTPError, RequestValidationError
from models.data_analysis import HealthStatus

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_client: CatalogClient | None = None

HEADER_API_KEY = "X-API-Key"
HEADER_REQUEST_ID = "X-Request-ID"
MIME_JSON = "application/json"

# Envelope codes that mean "no error"
SUCCESS_CODES = frozenset({"", "0", "200", "ok", "success"})


class CatalogClient:
    """Async HTTP client for the catalog service."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        user_agent: str | None = None,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        base_url = (base_url if base_url is not None else settings.matrixflow_base_url).strip()
        api_key = (api_key if api_key is not None else settings.matrixflow_api_key).strip()
        if not base_url:
            raise RequestValidationError("baseURL is required")
        if not api_key:
            raise RequestValidationError("apiKey is required")

        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout if timeout and timeout > 0 else settings.matrixflow_timeout
        self._user_agent = (user_agent or "").strip() or settings.matrixflow_user_agent
        self._default_headers = dict(default_headers or {})
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float:
        return self._timeout

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Create the underlying ``httpx.AsyncClient`` connection pool."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._base_headers(),
            transport=self._transport,
            limits=httpx.Limits(
                max_connections=30,
                max_keepalive_connections=15,
                keepalive_expiry=30,
            ),
        )
        logger.info("CatalogClient started — base_url=%s", self._base_url)

    async def close(self) -> None:
        """Gracefully close the connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("CatalogClient closed")

    async def __aenter__(self) -> CatalogClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- public API ----------------------------------------------------------

    async def send_raw(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        request_id: str | None = None,
        timeout: httpx.Timeout | float | None = None,
    ) -> httpx.Response:
        """Send a request and return the live response with its body unread.

        The caller owns the response and must ``await response.aclose()``.
        ``timeout`` overrides the client default for this call only.
        """
        client = self._ensure_started()
        request = client.build_request(
            method,
            _ensure_leading_slash(path),
            json=json_body,
            params=params,
            headers=self._call_headers(headers, request_id),
            timeout=timeout if timeout is not None else client.timeout,
        )
        t0 = time.monotonic()
        response = await client.send(request, stream=True)
        elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "%s %s → %d (%.0fms)",
            method, path, response.status_code, elapsed_ms,
        )
        return response

    async def post_json(
        self,
        path: str,
        json_body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        request_id: str | None = None,
    ) -> Any:
        """POST a JSON body and return the envelope's ``data``.

        Raises :class:`HTTPError` on non-2xx responses and
        :class:`APIError` when the envelope carries an error code.
        """
        response = await self.send_raw(
            "POST", path,
            json_body=json_body,
            headers=headers,
            params=params,
            request_id=request_id,
        )
        try:
            body = await response.aread()
        finally:
            await response.aclose()

        if not response.is_success:
            raise HTTPError(status_code=response.status_code, body=body)
        return _decode_envelope(response)

    async def health_check(self, **call_options: Any) -> HealthStatus:
        """Query ``GET /healthz``."""
        response = await self.send_raw("GET", "/healthz", **call_options)
        try:
            body = await response.aread()
        finally:
            await response.aclose()

        if not response.is_success:
            raise HTTPError(status_code=response.status_code, body=body)
        return HealthStatus.model_validate_json(body)

    # -- internals -----------------------------------------------------------

    def _base_headers(self) -> dict[str, str]:
        headers = {
            HEADER_API_KEY: self._api_key,
            "User-Agent": self._user_agent,
        }
        headers.update(self._default_headers)
        return headers

    def _call_headers(
        self,
        headers: Mapping[str, str] | None,
        request_id: str | None,
    ) -> dict[str, str]:
        merged: dict[str, str] = {}
        request_id = (request_id or "").strip()
        if request_id:
            merged[HEADER_REQUEST_ID] = request_id
        merged.update({k: v for k, v in (headers or {}).items() if k})
        return merged

    def _ensure_started(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("CatalogClient not started — call await client.start() first")
        return self._http


def _ensure_leading_slash(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def _decode_envelope(response: httpx.Response) -> Any:
    """Unwrap ``{"code", "msg", "request_id", "data"}`` from a read response."""
    http_status = response.status_code
    if not response.content.strip():
        return {}
    try:
        envelope = response.json()
    except ValueError as exc:
        raise APIError(
            code="ErrDecode",
            message=f"invalid response envelope: {exc}",
            http_status=http_status,
        ) from exc

    if not isinstance(envelope, dict):
        raise APIError(code="ErrDecode", message="response envelope is not an object", http_status=http_status)

    code = envelope.get("code")
    if code is not None and str(code).strip().lower() not in SUCCESS_CODES:
        raise APIError(
            code=str(code),
            message=str(envelope.get("msg") or envelope.get("message") or ""),
            request_id=str(envelope.get("request_id") or ""),
            http_status=http_status,
        )

    data = envelope.get("data")
    return {} if data is None else data


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------

def get_catalog_client() -> CatalogClient:
    """Return the module-level CatalogClient singleton (create if needed)."""
    global _client
    if _client is None:
        _client = CatalogClient()
    return _client
