"""Mail transport — out-of-band notification of newly delivered stages.

The engine's job ends once the inbox append is committed; the transport is
told about it afterwards, best-effort. Any transport matches the protocol:

    async def __call__(self, recipient: str, subject: str, body: str) -> None: ...

Two implementations are provided:

    HttpTransport — posts the message as JSON to a mail-provider HTTP API.
    LogTransport  — logs the message and sends nothing. Used when no
                    provider is configured.

Production code builds one with transport_from_env(). Tests patch
httpx.AsyncClient.post or pass a stub.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every transport implementation must match this signature
# ---------------------------------------------------------------------------

class Transport(Protocol):
    async def __call__(self, recipient: str, subject: str, body: str) -> None: ...


# ---------------------------------------------------------------------------
# HttpTransport — talks to a real provider
# ---------------------------------------------------------------------------

class HttpTransport:
    """Async HTTP client for a JSON mail API.

    Request:  POST {provider_url}/v3/mail/send
              {"personalizations": [{"to": [{"email": ...}]}],
               "from": {"email": sender}, "subject": ...,
               "content": [{"type": "text/plain", "value": ...}]}

    Args:
        provider_url: Base URL of the provider, e.g. "https://api.sendgrid.com".
        api_key:      Bearer token, or empty string if not required.
        sender:       From address for every message.
        timeout:      HTTP timeout in seconds. Defaults to 10.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        sender: str = "admin@darkriver.site",
        timeout: float = 10.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, recipient: str, subject: str, body: str) -> tuple[str, dict]:
        url = f"{self._base_url}/v3/mail/send"
        payload = {
            "personalizations": [{"to": [{"email": recipient}]}],
            "from": {"email": self._sender},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        return url, payload

    async def __call__(self, recipient: str, subject: str, body: str) -> None:
        url, payload = self._build_request(recipient, subject, body)
        logger.debug("mail send url=%s recipient=%s subject=%r", url, recipient, subject)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=payload, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise TransportError(f"Cannot connect to mail provider at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Mail provider returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Mail provider timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise TransportError(f"Mail request failed: {e}") from e


# ---------------------------------------------------------------------------
# LogTransport — logs only
# ---------------------------------------------------------------------------

class LogTransport:
    """Logs each notification instead of sending it. No network calls."""

    async def __call__(self, recipient: str, subject: str, body: str) -> None:
        logger.info("mail (not sent) recipient=%s subject=%r body_len=%d",
                    recipient, subject, len(body))


def transport_from_env(sender: str = "admin@darkriver.site") -> Transport:
    """HttpTransport if MAIL_PROVIDER_URL is set, else LogTransport."""
    url = os.getenv("MAIL_PROVIDER_URL", "")
    if not url:
        return LogTransport()
    return HttpTransport(
        provider_url=url,
        api_key=os.getenv("MAIL_PROVIDER_API_KEY", ""),
        sender=sender,
    )


# ---------------------------------------------------------------------------
# TransportError — raised by HttpTransport for all connection and protocol failures
# ---------------------------------------------------------------------------

class TransportError(RuntimeError):
    """Raised when the mail provider cannot be reached or returns an error."""
