"""
Tests for the concrete notification channels and the channel registry
"""
import pytest
from unittest.mock import MagicMock, patch

import httpx

from core.notification.channel import NotificationChannelRegistry
from app.system.notification import EmailChannel, SmsChannel


def _response(status_code, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


class TestSmsChannel:

    def test_posts_gateway_payload(self):
        client = MagicMock()
        client.post.return_value = _response(201)
        channel = SmsChannel(api_url="https://sms.example/v1/sms", api_key="global", client=client)

        assert channel.send("+33601020304", "ignored", "Bonjour") is True

        url = client.post.call_args.args[0]
        kwargs = client.post.call_args.kwargs
        assert url == "https://sms.example/v1/sms"
        assert kwargs["json"] == {"from": "AgendaCT", "to": ["+33601020304"], "text": "Bonjour"}
        assert kwargs["headers"]["Api-Key"] == "global"

    def test_per_center_overrides(self):
        client = MagicMock()
        client.post.return_value = _response(200)
        channel = SmsChannel(api_url="https://sms.example", api_key="global", client=client)
        channel.send("0601020304", "", "x", {"api_key": "center-key", "sender": "CTNORD"})
        kwargs = client.post.call_args.kwargs
        assert kwargs["headers"]["Api-Key"] == "center-key"
        assert kwargs["json"]["from"] == "CTNORD"

    def test_no_key(self):
        client = MagicMock()
        assert SmsChannel(api_url="https://sms.example", client=client).send("0601020304", "", "x") is False
        client.post.assert_not_called()

    def test_rejected(self):
        client = MagicMock()
        client.post.return_value = _response(401, "bad key")
        channel = SmsChannel(api_url="https://sms.example", api_key="k", client=client)
        assert channel.send("0601020304", "", "x") is False

    def test_transport_error(self):
        client = MagicMock()
        client.post.side_effect = httpx.ConnectError("unreachable")
        channel = SmsChannel(api_url="https://sms.example", api_key="k", client=client)
        assert channel.send("0601020304", "", "x") is False

    def test_module_level_post_without_client(self):
        with patch("app.system.notification.sms_channel.httpx.post", return_value=_response(202)) as post:
            assert SmsChannel(api_url="https://sms.example", api_key="k", timeout=3).send("06", "", "x")
        assert post.call_args.kwargs["timeout"] == 3


class TestEmailChannel:

    def test_sends_over_smtp(self):
        with patch("app.system.notification.email_channel.smtplib.SMTP") as smtp:
            server = smtp.return_value.__enter__.return_value
            channel = EmailChannel(smtp_host="smtp.example", smtp_port=587, smtp_user="bot",
                                   smtp_password="pw", sender_email="no-reply@agendact.com")

            assert channel.send("jean@example.com", "Sujet", "Corps") is True

            smtp.assert_called_once_with("smtp.example", 587, timeout=10.0)
            server.starttls.assert_called_once()
            server.login.assert_called_once_with("bot", "pw")
            message = server.send_message.call_args.args[0]
            assert message["To"] == "jean@example.com"
            assert message["From"] == "no-reply@agendact.com"
            assert message["Subject"] == "Sujet"

    def test_without_tls_or_login(self):
        with patch("app.system.notification.email_channel.smtplib.SMTP") as smtp:
            server = smtp.return_value.__enter__.return_value
            EmailChannel(use_tls=False, sender_email="a@b.c").send("jean@example.com", "s", "b")
            server.starttls.assert_not_called()
            server.login.assert_not_called()

    def test_smtp_failure(self):
        with patch("app.system.notification.email_channel.smtplib.SMTP", side_effect=OSError("refused")):
            assert EmailChannel(sender_email="a@b.c").send("jean@example.com", "s", "b") is False

    def test_html_alternative(self):
        message = EmailChannel(sender_email="a@b.c").build_message(
            "jean@example.com", "s", "plain", {"html": "<p>html</p>", "reply_to": "ct@example.com"}
        )
        assert message["Reply-To"] == "ct@example.com"
        assert len(message.get_payload()) == 2


class TestRegistry:

    @pytest.fixture
    def registry(self):
        registry = NotificationChannelRegistry()
        registry.clear()
        yield registry
        registry.clear()

    def test_singleton_and_lookup(self, registry):
        assert NotificationChannelRegistry() is registry
        channel = MagicMock()
        channel.get_channel_type.return_value = "sms"
        registry.register(channel)

        assert registry.get_channel("sms") is channel
        assert registry.get_channel("email") is None
