"""Tests for darkriver.transport — HttpTransport, LogTransport, env selection."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from darkriver.transport import (
    HttpTransport,
    LogTransport,
    TransportError,
    transport_from_env,
)


def _mock_response(status: int = 202) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


class TestHttpTransport:
    @pytest.fixture
    def transport(self) -> HttpTransport:
        return HttpTransport(provider_url="https://mail.example/", api_key="key",
                             sender="admin@darkriver.site")

    async def test_posts_to_send_endpoint(self, transport: HttpTransport) -> None:
        mock_post = AsyncMock(return_value=_mock_response())
        with patch("httpx.AsyncClient.post", mock_post):
            await transport("p@example.com", "Hello", "Body")
        assert mock_post.call_args[0][0] == "https://mail.example/v3/mail/send"

    async def test_payload_shape(self, transport: HttpTransport) -> None:
        mock_post = AsyncMock(return_value=_mock_response())
        with patch("httpx.AsyncClient.post", mock_post):
            await transport("p@example.com", "Hello", "Body")
        payload = mock_post.call_args.kwargs["json"]
        assert payload["personalizations"] == [{"to": [{"email": "p@example.com"}]}]
        assert payload["from"] == {"email": "admin@darkriver.site"}
        assert payload["subject"] == "Hello"
        assert payload["content"] == [{"type": "text/plain", "value": "Body"}]

    async def test_bearer_token_sent(self, transport: HttpTransport) -> None:
        mock_post = AsyncMock(return_value=_mock_response())
        with patch("httpx.AsyncClient.post", mock_post):
            await transport("p@example.com", "s", "b")
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer key"

    async def test_no_auth_header_without_key(self) -> None:
        transport = HttpTransport(provider_url="https://mail.example")
        mock_post = AsyncMock(return_value=_mock_response())
        with patch("httpx.AsyncClient.post", mock_post):
            await transport("p@example.com", "s", "b")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_http_error_raises(self, transport: HttpTransport) -> None:
        mock_post = AsyncMock(return_value=_mock_response(500))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(TransportError, match="HTTP 500"):
                await transport("p@example.com", "s", "b")

    async def test_connect_error_raises(self, transport: HttpTransport) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(TransportError, match="Cannot connect"):
                await transport("p@example.com", "s", "b")

    async def test_timeout_raises(self, transport: HttpTransport) -> None:
        mock_post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(TransportError, match="timed out"):
                await transport("p@example.com", "s", "b")


class TestLogTransport:
    async def test_logs_without_network(self, caplog) -> None:
        caplog.set_level("INFO", logger="darkriver.transport")
        with patch("httpx.AsyncClient.post") as mock_post:
            await LogTransport()("p@example.com", "Subject", "Body")
        mock_post.assert_not_called()
        assert "not sent" in caplog.text


class TestTransportFromEnv:
    def test_log_transport_without_url(self, monkeypatch) -> None:
        monkeypatch.delenv("MAIL_PROVIDER_URL", raising=False)
        assert isinstance(transport_from_env(), LogTransport)

    def test_http_transport_with_url(self, monkeypatch) -> None:
        monkeypatch.setenv("MAIL_PROVIDER_URL", "https://mail.example")
        monkeypatch.setenv("MAIL_PROVIDER_API_KEY", "k")
        assert isinstance(transport_from_env(), HttpTransport)
