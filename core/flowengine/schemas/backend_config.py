"""
Backend Config - How API nodes reach a remote backend.

A backend config names the base URL relative API paths are resolved against,
the headers and authentication every request carries, and the transport
knobs (timeout, retries, proxy, compression, TLS verification).

The ``auth`` block is free-form; which keys matter depends on ``authType``:

    bearer     {token, prefix?}
    basic      {username, password}
    apiKey     {location: header|query|cookie, paramName, apiKey}
    cookie     {cookieName, cookieValue}
    custom     {customHeaders: [{key, value}]}
    oauth2_cc  {tokenUrl, clientId, clientSecret, scopes?}
"""

from enum import StrEnum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthType(StrEnum):
    NONE = "none"
    BEARER = "bearer"
    BASIC = "basic"
    API_KEY = "apiKey"
    OAUTH2_CC = "oauth2_cc"
    COOKIE = "cookie"
    CUSTOM = "custom"


class Header(BaseModel):
    key: str
    value: str = ""

    model_config = ConfigDict(extra="ignore")

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)


class ProxyConfig(BaseModel):
    host: str
    port: int | str | None = None
    protocol: str | None = None
    username: str | None = None
    password: str | None = None

    model_config = ConfigDict(extra="ignore")

    @property
    def url(self) -> str:
        """Proxy URL in the form httpx expects."""
        scheme = self.protocol or "http"
        credentials = ""
        if self.username:
            credentials = quote(self.username, safe="")
            if self.password:
                credentials += ":" + quote(self.password, safe="")
            credentials += "@"
        port = f":{self.port}" if self.port not in (None, "") else ""
        return f"{scheme}://{credentials}{self.host}{port}"


class BackendConfig(BaseModel):
    """
    Configuration of a remote backend used by API nodes.

    Example:
        BackendConfig.model_validate({
            "id": "crm",
            "baseUrl": "https://crm.example.com/api",
            "authType": "bearer",
            "auth": {"token": "abc"},
            "timeout": 5000,
        })
    """

    id: str | None = None
    name: str | None = None
    base_url: str = Field(default="", alias="baseUrl")
    timeout: int = Field(default=10000, description="Request timeout in milliseconds")
    retries: int = 0
    default_headers: list[Header] = Field(default_factory=list, alias="defaultHeaders")
    auth_type: AuthType = Field(default=AuthType.NONE, alias="authType")
    auth: dict[str, Any] = Field(default_factory=dict)
    compression: bool = False
    proxy: ProxyConfig | None = None
    tls_skip_verify: bool = Field(default=False, alias="tlsSkipVerify")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("proxy", mode="before")
    @classmethod
    def _empty_proxy(cls, v: Any) -> Any:
        # The editor sends {"host": ""} for "no proxy"
        if isinstance(v, dict) and not v.get("host"):
            return None
        return v

    @field_validator("auth", mode="before")
    @classmethod
    def _auth_dict(cls, v: Any) -> Any:
        return v or {}

    @property
    def timeout_seconds(self) -> float | None:
        return self.timeout / 1000 if self.timeout and self.timeout > 0 else None

    def header_dict(self) -> dict[str, str]:
        return {h.key: h.value for h in self.default_headers}
