"""
Auth Resolver - turns a backend config's auth block into request headers.

``AuthResolver.apply`` mutates the outgoing headers and query parameters
according to ``authType``. OAuth2 client-credentials tokens come from an
``OAuth2TokenCache`` shared by every run of the process; a token request that
fails leaves the request unauthenticated rather than failing the node.
"""

import base64
import hashlib
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from flowengine.errors import TransportError
from flowengine.schemas.backend_config import AuthType, BackendConfig

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL = 3600
EXPIRY_MARGIN_SECONDS = 60


def _lifetime_seconds(expires_in: Any) -> int:
    """Token lifetime from an ``expires_in`` value; servers send ints, floats or strings."""
    try:
        seconds = int(float(expires_in))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_TOKEN_TTL
    return seconds if seconds > 0 else DEFAULT_TOKEN_TTL


@dataclass
class _CachedToken:
    access_token: str
    expires_at: float


class OAuth2TokenCache:
    """
    Process-wide cache of OAuth2 client-credentials tokens.

    Entries are keyed by backend config identity and live ``expires_in - 60``
    seconds. Reads and writes are guarded by a lock so concurrent runs (and
    threads) see a consistent cache.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._tokens: dict[str, _CachedToken] = {}
        self._lock = threading.Lock()
        self._clock = clock

    @staticmethod
    def cache_key(config: BackendConfig) -> str:
        if config.id:
            return f"oauth2:{config.id}"
        auth = config.auth
        identity = "|".join(
            str(auth.get(k) or "") for k in ("tokenUrl", "clientId", "scopes")
        )
        return "oauth2:" + hashlib.sha256(identity.encode()).hexdigest()[:16]

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._tokens.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._tokens[key]
                return None
            return entry.access_token

    def put(self, key: str, access_token: str, expires_in: Any = None) -> None:
        ttl = _lifetime_seconds(expires_in) - EXPIRY_MARGIN_SECONDS
        if ttl <= 0:
            return
        with self._lock:
            self._tokens[key] = _CachedToken(access_token, self._clock() + ttl)

    def invalidate(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._tokens.clear()
            else:
                self._tokens.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    async def fetch_token(
        self,
        config: BackendConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> str:
        """
        Return a valid access token for ``config``, requesting one if needed.

        Raises:
            TransportError: the token endpoint was unreachable or answered
                without an ``access_token``
        """
        key = self.cache_key(config)
        cached = self.get(key)
        if cached:
            return cached

        auth = config.auth
        token_url = auth.get("tokenUrl")
        if not token_url:
            raise TransportError("OAuth2 configuration is missing tokenUrl")

        form = {
            "grant_type": "client_credentials",
            "client_id": auth.get("clientId") or "",
            "client_secret": auth.get("clientSecret") or "",
        }
        scope = auth.get("scopes") or auth.get("scope")
        if scope:
            form["scope"] = " ".join(scope) if isinstance(scope, list) else str(scope)

        try:
            async with httpx.AsyncClient(
                transport=transport,
                timeout=config.timeout_seconds,
                verify=not config.tls_skip_verify,
            ) as client:
                response = await client.post(token_url, data=form)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(f"OAuth2 authentication failed: {e}", "POST", token_url) from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise TransportError(
                "OAuth2 authentication failed: no access_token in response", "POST", token_url
            )

        self.put(key, access_token, data.get("expires_in"))
        logger.debug(f"Fetched OAuth2 token for {key}")
        return access_token


# Shared across every executor in the process
default_token_cache = OAuth2TokenCache()


class AuthResolver:
    """Applies a backend config's authentication to outgoing requests."""

    def __init__(
        self,
        token_cache: OAuth2TokenCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_cache = token_cache if token_cache is not None else default_token_cache
        self._transport = transport

    async def apply(
        self,
        config: BackendConfig | None,
        headers: dict[str, str],
        params: dict[str, Any],
    ) -> None:
        if config is None or config.auth_type == AuthType.NONE:
            return
        auth = config.auth
        auth_type = config.auth_type

        if auth_type == AuthType.BEARER:
            prefix = auth.get("prefix") or "Bearer"
            headers["Authorization"] = f"{prefix} {auth.get('token', '')}"

        elif auth_type == AuthType.BASIC:
            raw = f"{auth.get('username', '')}:{auth.get('password', '')}"
            headers["Authorization"] = "Basic " + base64.b64encode(raw.encode()).decode()

        elif auth_type == AuthType.API_KEY:
            name = auth.get("paramName")
            value = auth.get("apiKey", "")
            location = auth.get("location", "header")
            if not name:
                logger.warning("⚠ apiKey auth configured without paramName, skipping")
            elif location == "header":
                headers[name] = value
            elif location == "query":
                params[name] = value
            elif location == "cookie":
                headers["Cookie"] = f"{name}={value}"
            else:
                logger.warning(f"⚠ Unknown apiKey location '{location}', skipping")

        elif auth_type == AuthType.COOKIE:
            headers["Cookie"] = f"{auth.get('cookieName', '')}={auth.get('cookieValue', '')}"

        elif auth_type == AuthType.CUSTOM:
            for header in auth.get("customHeaders") or []:
                if isinstance(header, dict) and header.get("key"):
                    headers[header["key"]] = str(header.get("value", ""))

        elif auth_type == AuthType.OAUTH2_CC:
            try:
                token = await self.token_cache.fetch_token(config, transport=self._transport)
            except TransportError as e:
                logger.error(f"✗ OAuth2 token retrieval failed, continuing without token: {e}")
            else:
                headers["Authorization"] = f"Bearer {token}"
