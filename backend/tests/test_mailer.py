import smtplib

import pytest

from journal_auth.core.config import Settings
from journal_auth.core.errors import DeliveryError
from journal_auth.services import mailer as mailer_module
from journal_auth.services.mailer import (
    ConsoleMailer,
    SMTPMailer,
    build_mailer,
    render_otp_body,
    subject_for,
)


def _smtp_mailer(**overrides) -> SMTPMailer:
    params = dict(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        from_email="no-reply@example.com",
        from_name="Journaling App",
        ttl_minutes=5,
    )
    params.update(overrides)
    return SMTPMailer(**params)


class _FakeSMTP:
    instances: list["_FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls: list[str] = []
        self.sent: list[tuple[str, list[str], str]] = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append("login")

    def sendmail(self, from_addr, to_addrs, msg):
        self.sent.append((from_addr, to_addrs, msg))


def test_subjects_depend_on_purpose():
    assert subject_for("register") == "Verify Your Email Address"
    assert subject_for("reset_password") == "Reset Your Password"


def test_body_carries_code_and_ttl():
    body = render_otp_body("123456", "reset_password", 5)
    assert "123456" in body
    assert "expire in 5 minutes" in body
    assert "reset your password" in body


def test_build_message_headers():
    msg = _smtp_mailer().build_message("user@example.com", "123456", "register")
    assert msg["Subject"] == "Verify Your Email Address"
    assert msg["To"] == "user@example.com"
    assert msg["From"] == "Journaling App <no-reply@example.com>"


def test_smtp_send_uses_tls_and_login(monkeypatch):
    _FakeSMTP.instances = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _FakeSMTP)

    _smtp_mailer().send_otp("user@example.com", "654321", "register")

    server = _FakeSMTP.instances[-1]
    assert server.calls == ["starttls", "login"]
    from_addr, to_addrs, _ = server.sent[0]
    assert from_addr == "no-reply@example.com"
    assert to_addrs == ["user@example.com"]


def test_smtp_skips_login_without_username(monkeypatch):
    _FakeSMTP.instances = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _FakeSMTP)

    _smtp_mailer(username="", use_tls=False).send_otp("user@example.com", "654321", "register")

    assert _FakeSMTP.instances[-1].calls == []


@pytest.mark.parametrize("failure", [smtplib.SMTPAuthenticationError(535, b"bad auth"), ConnectionRefusedError()])
def test_smtp_failures_become_delivery_errors(monkeypatch, failure):
    def broken(*args, **kwargs):
        raise failure

    monkeypatch.setattr(mailer_module.smtplib, "SMTP", broken)
    with pytest.raises(DeliveryError):
        _smtp_mailer().send_otp("user@example.com", "654321", "register")


def test_console_mailer_keeps_outbox():
    mailer = ConsoleMailer()
    mailer.send_otp("user@example.com", "111222", "register")
    assert mailer.outbox == [("user@example.com", "111222", "register")]


def test_build_mailer_picks_backend():
    assert isinstance(build_mailer(Settings(MAIL_BACKEND="console")), ConsoleMailer)
    smtp = build_mailer(Settings(MAIL_BACKEND="smtp", SMTP_HOST="mail.local", OTP_TTL_MINUTES=7))
    assert isinstance(smtp, SMTPMailer)
    assert smtp.host == "mail.local"
    assert smtp.ttl_minutes == 7
