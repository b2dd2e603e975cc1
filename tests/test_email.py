"""Tests for SMTP message construction and delivery."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import aiosmtplib
import pytest

from karakeep_digest.config import EmailConfig
from karakeep_digest.errors import ConfigurationError, DeliveryError
from karakeep_digest.output import email as email_module
from karakeep_digest.output.email import build_message, send_digest, verify_smtp_connection

WHEN = datetime(2026, 1, 2, tzinfo=timezone.utc)


def _cfg(**overrides) -> EmailConfig:
    values = dict(
        smtp_host="smtp.example.com",
        smtp_user="me",
        smtp_password="pw",
        sender="digest@example.com",
        recipients=["a@example.com", "b@example.com"],
    )
    values.update(overrides)
    return EmailConfig(**values)


def test_build_message_has_text_and_html_alternatives():
    msg = build_message("<p>Hello</p>", "Hello", _cfg(), WHEN)

    assert msg["Subject"] == "Your Weekly Karakeep Digest - January 2, 2026"
    assert msg["To"] == "a@example.com, b@example.com"
    assert msg["From"] == "digest@example.com"
    assert msg["Message-ID"].endswith("@example.com>")
    assert msg.get_body(preferencelist=("plain",)).get_content().strip() == "Hello"
    assert "<p>Hello</p>" in msg.get_body(preferencelist=("html",)).get_content()


def test_build_message_requires_sender_and_recipients():
    with pytest.raises(ConfigurationError):
        build_message("<p></p>", "", _cfg(recipients=[]), WHEN)


@pytest.mark.parametrize(
    "port,secure,expected",
    [
        (465, None, {"use_tls": True, "start_tls": False}),
        (587, None, {"use_tls": False, "start_tls": True}),
        (2525, True, {"use_tls": True, "start_tls": False}),
        (465, False, {"use_tls": False, "start_tls": True}),
    ],
)
def test_tls_mode_auto_detects_from_port(monkeypatch, port, secure, expected):
    captured: dict = {}

    async def fake_send(message, **kwargs):
        captured.update(kwargs)

    monkeypatch.setattr(email_module.aiosmtplib, "send", fake_send)

    asyncio.run(send_digest("<p>x</p>", "x", _cfg(smtp_port=port, smtp_secure=secure), WHEN))

    assert captured["hostname"] == "smtp.example.com"
    assert captured["port"] == port
    assert captured["username"] == "me"
    assert {k: captured[k] for k in ("use_tls", "start_tls")} == expected


def test_send_digest_returns_message_id(monkeypatch):
    sent = []

    async def fake_send(message, **kwargs):
        sent.append(message)

    monkeypatch.setattr(email_module.aiosmtplib, "send", fake_send)

    message_id = asyncio.run(send_digest("<p>x</p>", "x", _cfg(), WHEN))

    assert message_id == sent[0]["Message-ID"]


def test_smtp_failure_becomes_delivery_error(monkeypatch):
    async def failing_send(message, **kwargs):
        raise aiosmtplib.SMTPConnectError("refused")

    monkeypatch.setattr(email_module.aiosmtplib, "send", failing_send)

    with pytest.raises(DeliveryError, match="SMTP delivery failed"):
        asyncio.run(send_digest("<p>x</p>", "x", _cfg(), WHEN))


def test_verify_smtp_connection(monkeypatch):
    events: list[str] = []

    class FakeSMTP:
        is_connected = False

        def __init__(self, **kwargs):
            events.append(f"init:{kwargs['port']}")

        async def connect(self):
            self.is_connected = True
            events.append("connect")

        async def login(self, user, password):
            events.append(f"login:{user}")

        async def quit(self):
            self.is_connected = False
            events.append("quit")

        def close(self):
            events.append("close")

    monkeypatch.setattr(email_module.aiosmtplib, "SMTP", FakeSMTP)

    assert asyncio.run(verify_smtp_connection(_cfg())) is True
    assert events == ["init:587", "connect", "login:me", "quit"]


def test_verify_smtp_connection_reports_failure(monkeypatch):
    class RefusingSMTP:
        is_connected = False

        def __init__(self, **kwargs):
            pass

        async def connect(self):
            raise ConnectionRefusedError("nope")

    monkeypatch.setattr(email_module.aiosmtplib, "SMTP", RefusingSMTP)

    assert asyncio.run(verify_smtp_connection(_cfg())) is False
    assert asyncio.run(verify_smtp_connection(_cfg(smtp_host=None))) is False


def test_verify_smtp_connection_closes_client_when_login_fails(monkeypatch):
    events: list[str] = []

    class RejectingSMTP:
        is_connected = False

        def __init__(self, **kwargs):
            pass

        async def connect(self):
            self.is_connected = True

        async def login(self, user, password):
            raise email_module.aiosmtplib.SMTPAuthenticationError(535, "bad credentials")

        async def quit(self):
            events.append("quit")

        def close(self):
            self.is_connected = False
            events.append("close")

    monkeypatch.setattr(email_module.aiosmtplib, "SMTP", RejectingSMTP)

    assert asyncio.run(verify_smtp_connection(_cfg())) is False
    assert events == ["close"]
