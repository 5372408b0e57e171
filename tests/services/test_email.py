"""Email backend tests."""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from alive.services.email import (
    ConsoleEmailBackend,
    EmailService,
    ResendEmailBackend,
    SMTPEmailBackend,
    get_email_backend,
    render_notification_html,
)


def smtp_backend(port: int, use_tls: bool = True) -> SMTPEmailBackend:
    return SMTPEmailBackend(
        host="smtp.example.com",
        port=port,
        username="user",
        password="pass",
        use_tls=use_tls,
        from_address="Alive <noreply@example.com>",
    )


@pytest.mark.asyncio
async def test_console_backend_logs_message(caplog):
    backend = ConsoleEmailBackend()

    with caplog.at_level(logging.INFO):
        result = await backend.send(
            to="field@example.com",
            subject="Alive email verification",
            html="<p>Your code</p>",
            text="Your email verification code is: 123456.",
        )

    assert result is True
    assert "field@example.com" in caplog.text
    assert "123456" in caplog.text


class TestSMTPEmailBackend:
    """Tests for SMTP delivery."""

    @pytest.mark.asyncio
    async def test_port_465_uses_implicit_tls(self):
        with patch("alive.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            result = await smtp_backend(465).send(to="a@example.com", subject="Hi", html="<p>Hi</p>")

        assert result is True
        kwargs = mock_send.call_args.kwargs
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert kwargs["hostname"] == "smtp.example.com"

    @pytest.mark.asyncio
    async def test_other_ports_use_starttls(self):
        with patch("alive.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await smtp_backend(587).send(to="a@example.com", subject="Hi", html="<p>Hi</p>")

        kwargs = mock_send.call_args.kwargs
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_tls_disabled(self):
        with patch("alive.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await smtp_backend(25, use_tls=False).send(to="a@example.com", subject="Hi", html="<p>Hi</p>")

        kwargs = mock_send.call_args.kwargs
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is False

    def test_message_has_plain_and_html_parts(self):
        message = smtp_backend(465)._build_message("a@example.com", "Hi", "<p>Hi</p>", "Hi")

        assert message["To"] == "a@example.com"
        assert message["From"] == "Alive <noreply@example.com>"
        assert [part.get_content_type() for part in message.get_payload()] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_send_failure_returns_false(self):
        with patch(
            "alive.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=OSError("Connection refused"),
        ):
            result = await smtp_backend(465).send(to="a@example.com", subject="Hi", html="<p>Hi</p>")

        assert result is False


class TestResendEmailBackend:
    """Tests for the Resend API backend."""

    @pytest.mark.asyncio
    async def test_send_success(self):
        backend = ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=mock_response) as mock_post:
            result = await backend.send(to="a@example.com", subject="Reset", html="<p>PIN</p>", text="PIN")

        assert result is True
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer re_test_key"
        assert kwargs["json"]["to"] == ["a@example.com"]
        assert kwargs["json"]["text"] == "PIN"

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self):
        backend = ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")
        mock_response = MagicMock()
        mock_response.status_code = 422
        mock_response.text = "Invalid from address"
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Unprocessable", request=MagicMock(), response=mock_response
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=mock_response):
            result = await backend.send(to="a@example.com", subject="Reset", html="<p>PIN</p>")

        assert result is False


class TestGetEmailBackend:
    """Backend selection from settings."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("console", ConsoleEmailBackend), ("smtp", SMTPEmailBackend), ("resend", ResendEmailBackend)],
    )
    def test_selects_backend(self, name, expected):
        with patch("alive.services.email.settings") as mock_settings:
            mock_settings.email_backend = name
            mock_settings.smtp_port = 465
            assert isinstance(get_email_backend(), expected)

    def test_unknown_backend(self):
        with patch("alive.services.email.settings") as mock_settings:
            mock_settings.email_backend = "carrier-pigeon"
            with pytest.raises(ValueError, match="Unknown email backend"):
                get_email_backend()


def test_notification_html_escapes_message():
    html = render_notification_html("Code: <b>123456</b>\nThanks")

    assert "&lt;b&gt;123456&lt;/b&gt;" in html
    assert "<br>" in html
    assert "Notification" in html


class TestEmailService:
    """Tests for the high-level email service."""

    @pytest.mark.asyncio
    async def test_send_notification(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        service = EmailService(backend=mock_backend)

        result = await service.send_notification(
            to="a@example.com", subject="Alive password reset", message="Your PIN is: 654321."
        )

        assert result is True
        kwargs = mock_backend.send.call_args.kwargs
        assert kwargs["subject"] == "Alive password reset"
        assert kwargs["text"] == "Your PIN is: 654321."
        assert "654321" in kwargs["html"]

    def test_backend_is_lazy(self):
        service = EmailService()

        with patch("alive.services.email.get_email_backend", return_value=ConsoleEmailBackend()) as factory:
            assert service.backend is service.backend
            factory.assert_called_once()
