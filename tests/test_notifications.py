from __future__ import annotations

import dataclasses
import logging

import pytest

from auth_service import notifications
from auth_service.mail_templates import activation_email, describe_ttl, reset_password_email
from auth_service.notifications import BackgroundNotifier, SmtpNotifier


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls: list[str] = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(f"login:{user}")

    def send_message(self, message):
        self.messages.append(message)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_smtp_notifier_sends_html(settings, fake_smtp):
    configured = dataclasses.replace(settings, mail_host="mail.test", mail_port=2525, mail_user="bot")
    SmtpNotifier(configured).send("user@example.com", "Hello", "<p>hi</p>")

    smtp = fake_smtp.instances[0]
    assert (smtp.host, smtp.port) == ("mail.test", 2525)
    assert smtp.calls == ["starttls", "login:bot"]
    message = smtp.messages[0]
    assert message["To"] == "user@example.com"
    assert message["Subject"] == "Hello"
    assert "<p>hi</p>" in message.get_body(preferencelist=("html",)).get_content()


def test_smtp_notifier_skips_login_without_credentials(settings, fake_smtp):
    plain = dataclasses.replace(settings, mail_user="", mail_use_tls=False)
    SmtpNotifier(plain).send("user@example.com", "Hello", "<p>hi</p>")
    assert fake_smtp.instances[0].calls == []


class Exploding:
    def send(self, to_email, subject, body_html):
        raise ConnectionError("smtp down")


def test_background_notifier_logs_failures(caplog):
    notifier = BackgroundNotifier(Exploding(), max_workers=1)
    with caplog.at_level(logging.ERROR, logger="auth_service.notifications"):
        notifier.send("user@example.com", "Reset Your Password", "<p></p>")
        notifier.shutdown()
    assert "failed to send 'Reset Your Password' email" in caplog.text


def test_templates_embed_escaped_links():
    body = activation_email("https://site.example/users/activate/abc", 86400)
    assert "Activate Your Account" in body
    assert "https://site.example/users/activate/abc" in body

    body = reset_password_email("https://site.example/auth/update-password/?token=a&b", 3600)
    assert "token=a&amp;b" in body
    assert "expire in 1 hour." in body


@pytest.mark.parametrize(
    "seconds,expected",
    [(86400, "1 day"), (2 * 86400, "2 days"), (3600, "1 hour"), (5400, "90 minutes"), (45, "45 seconds")],
)
def test_describe_ttl(seconds, expected):
    assert describe_ttl(seconds) == expected
