"""
Unipile email transport - Sends emails and downloads attachments.

Supports:
- Sending an email (POST {base_url}/emails)
- Downloading an attachment's raw bytes
  (GET {base_url}/emails/{email_id}/attachments/{attachment_id})

Requires: UNIPILE_EMAIL_API_KEY, UNIPILE_BASE_URL
Optional: UNIPILE_EMAIL_ACCOUNT_ID (account used when a message names none)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class UnipileError(Exception):
    """The Unipile API rejected a request."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


def _sanitize_path_param(param: str, param_name: str = "parameter") -> str:
    """Sanitize URL path parameters to prevent path traversal."""
    if "/" in param or ".." in param:
        raise ValueError(f"Invalid {param_name}: cannot contain '/' or '..'")
    return param


class UnipileEmailTransport:
    """
    Email transport backed by the Unipile REST API.

    Usage:
        transport = UnipileEmailTransport(base_url, api_key, account_id="acc-1")
        await transport.send_email({"to": [...], "subject": "Hi", "body": "..."})
        content, content_type = await transport.fetch_attachment("email-1", "att-1")
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        account_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.account_id = account_id
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"X-API-KEY": self._api_key},
            timeout=self._timeout,
            transport=self._transport,
        )

    def _handle_error(self, response: httpx.Response, action: str) -> None:
        """Raise UnipileError for non-2xx responses."""
        if response.is_success:
            return
        if response.status_code == 401:
            raise UnipileError("Unipile API key is invalid or expired", status=401)
        if response.status_code == 404:
            raise UnipileError(f"Unipile resource not found while {action}", status=404)
        raise UnipileError(
            f"Unipile API error while {action} (HTTP {response.status_code}): "
            f"{response.text[:200]}",
            status=response.status_code,
        )

    async def send_email(self, message: dict[str, Any]) -> dict[str, Any]:
        """
        Send an email.

        Args:
            message: Unipile email payload (``to``, ``subject``, ``body``,
                optional ``cc``, ``bcc``, ``from``, ``reply_to``,
                ``custom_headers``, ``account_id``)

        Returns:
            The decoded Unipile response
        """
        payload = dict(message)
        if not payload.get("account_id") and self.account_id:
            payload["account_id"] = self.account_id

        async with self._client() as client:
            response = await client.post(f"{self.base_url}/emails", json=payload)
        self._handle_error(response, "sending email")

        logger.info(f"Unipile accepted email for account {payload.get('account_id')}")
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    async def fetch_attachment(
        self,
        email_id: str,
        attachment_id: str,
        account_id: str | None = None,
    ) -> tuple[bytes, str]:
        """
        Download an attachment.

        Returns:
            (content bytes, content type)
        """
        email_id = _sanitize_path_param(str(email_id), "email_id")
        attachment_id = _sanitize_path_param(str(attachment_id), "attachment_id")
        params = {}
        if account_id or self.account_id:
            params["account_id"] = account_id or self.account_id

        url = f"{self.base_url}/emails/{email_id}/attachments/{attachment_id}"
        async with self._client() as client:
            response = await client.get(url, params=params)
        self._handle_error(response, "fetching attachment")

        content_type = response.headers.get("content-type", "application/octet-stream")
        return response.content, content_type.split(";")[0].strip()
