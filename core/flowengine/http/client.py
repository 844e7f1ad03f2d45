"""
HTTP client used by API-call nodes.

One ``httpx.AsyncClient`` is opened per request so that per-config transport
options (TLS verification, proxy, timeout) never leak between backends.
Non-2xx responses become ``RemoteAPIError`` with a diagnostic message built
from the response body; network failures become ``TransportError``.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from flowengine.errors import RemoteAPIError, TransportError
from flowengine.schemas.backend_config import BackendConfig

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})
BODY_PREVIEW_LENGTH = 500
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class APIResponse:
    """Result of a successful (2xx) request."""

    status: int
    status_text: str
    body: Any
    headers: dict[str, str] = field(default_factory=dict)
    latency_ms: int = 0


def decode_body(response: httpx.Response) -> Any:
    """JSON-decode the response body when possible, otherwise return its text."""
    if not response.content:
        return ""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


def extract_error_detail(body: Any) -> str | None:
    """Pull a human-readable error out of a response body."""
    if isinstance(body, dict):
        for key in ("message", "error", "errorMessage"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            parts = []
            for item in errors:
                if isinstance(item, dict):
                    parts.append(str(item.get("message") or item.get("msg") or item))
                else:
                    parts.append(str(item))
            return "; ".join(parts)
        if isinstance(errors, dict) and errors:
            return "; ".join(f"{k}: {v}" for k, v in errors.items())
        if isinstance(errors, str) and errors:
            return errors
        return None
    if isinstance(body, str) and body.strip():
        return body.strip()[:200]
    return None


class APIClient:
    """
    Sends API-node requests according to a backend config.

    Args:
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
        production: Hide response bodies from error messages
        retry_backoff: Base delay in seconds between retries (doubled each time)
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        production: bool = False,
        retry_backoff: float = 1.0,
    ):
        self._transport = transport
        self._production = production
        self._retry_backoff = retry_backoff

    def _client(self, config: BackendConfig | None) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {
            "transport": self._transport,
            "timeout": DEFAULT_TIMEOUT_SECONDS,
            "follow_redirects": True,
        }
        if config is not None:
            kwargs["timeout"] = config.timeout_seconds
            kwargs["verify"] = not config.tls_skip_verify
            if config.proxy is not None:
                kwargs["proxy"] = config.proxy.url
        return httpx.AsyncClient(**kwargs)

    async def request(
        self,
        method: str,
        url: str,
        config: BackendConfig | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        body: Any = None,
    ) -> APIResponse:
        """
        Send one request, retrying per ``config.retries``.

        Raises:
            RemoteAPIError: the server answered with a non-2xx status
            TransportError: the server could not be reached
        """
        method = method.upper()
        headers = dict(headers or {})
        if config is not None:
            headers.setdefault(
                "Accept-Encoding", "gzip, deflate" if config.compression else "identity"
            )

        retries = config.retries if config is not None else 0
        attempts = 1 + (max(retries, 0) if method in IDEMPOTENT_METHODS else 0)

        send_kwargs: dict[str, Any] = {"headers": headers, "params": params or None}
        if body is not None:
            if isinstance(body, dict | list | int | float | bool):
                send_kwargs["json"] = body
            else:
                send_kwargs["content"] = str(body)

        for attempt in range(1, attempts + 1):
            start = time.perf_counter()
            try:
                async with self._client(config) as client:
                    response = await client.request(method, url, **send_kwargs)
            except httpx.TimeoutException as e:
                error = TransportError(f"Request timed out: {method} {url}", method, url)
                error.__cause__ = e
            except httpx.HTTPError as e:
                error = TransportError(f"Network error: {e} ({method} {url})", method, url)
                error.__cause__ = e
            else:
                latency_ms = int((time.perf_counter() - start) * 1000)
                if response.status_code >= 500 and attempt < attempts:
                    logger.warning(
                        f"⚠ {method} {url} answered {response.status_code}, "
                        f"retrying ({attempt}/{attempts - 1})"
                    )
                    await self._backoff(attempt)
                    continue
                return self._finish(method, url, response, latency_ms)

            if attempt < attempts:
                logger.warning(f"⚠ {error}, retrying ({attempt}/{attempts - 1})")
                await self._backoff(attempt)
                continue
            raise error

        # Unreachable: the loop either returns or raises on its last attempt
        raise TransportError(f"Request failed: {method} {url}", method, url)

    async def _backoff(self, attempt: int) -> None:
        await asyncio.sleep(self._retry_backoff * 2 ** (attempt - 1))

    def _finish(
        self, method: str, url: str, response: httpx.Response, latency_ms: int
    ) -> APIResponse:
        body = decode_body(response)
        if response.is_success:
            logger.info(f"✓ {method} {url} → {response.status_code} ({latency_ms}ms)")
            return APIResponse(
                status=response.status_code,
                status_text=response.reason_phrase,
                body=body,
                headers=dict(response.headers),
                latency_ms=latency_ms,
            )

        preview = None
        if not self._production and response.content:
            preview = response.text[:BODY_PREVIEW_LENGTH]
        error = RemoteAPIError(
            status=response.status_code,
            status_text=response.reason_phrase,
            detail=extract_error_detail(body),
            method=method,
            url=str(response.request.url),
            body_preview=preview,
            body=body,
        )
        logger.error(f"✗ {error}")
        raise error
