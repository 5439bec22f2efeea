from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Protocol

from journal_auth.core.config import Settings
from journal_auth.core.errors import DeliveryError
from journal_auth.core.logging import get_logger

logger = get_logger("mailer")

_SUBJECTS = {
    "register": "Verify Your Email Address",
    "reset_password": "Reset Your Password",
}
_ACTIONS = {
    "register": "verify your email address",
    "reset_password": "reset your password",
}

_BODY = """\
<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>OTP Verification</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background-color: #f8f9fa; border-radius: 8px; padding: 30px; margin: 20px 0;">
    <h2 style="color: #007bff; margin-top: 0;">Your One-Time Password</h2>
    <p>You requested to {action}. Please use the following code:</p>
    <div style="background-color: #fff; border: 2px solid #007bff; border-radius: 6px; padding: 20px; text-align: center; margin: 25px 0;">
      <span style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #007bff;">{code}</span>
    </div>
    <p style="color: #dc3545; font-weight: bold;">This code will expire in {ttl} minutes.</p>
    <p style="color: #6c757d; font-size: 14px; margin-top: 30px;">If you didn't request this code, please ignore this email.</p>
  </div>
</body>
</html>
"""


class OTPMailer(Protocol):
    def send_otp(self, to: str, code: str, purpose: str) -> None:
        """Deliver ``code``; raise DeliveryError on failure."""
        ...


def subject_for(purpose: str) -> str:
    return _SUBJECTS.get(purpose, "Your One-Time Password")


def render_otp_body(code: str, purpose: str, ttl_minutes: int) -> str:
    action = _ACTIONS.get(purpose, "complete your request")
    return _BODY.format(action=action, code=code, ttl=ttl_minutes)


class SMTPMailer:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str,
        password: str,
        from_email: str,
        from_name: str,
        ttl_minutes: int,
        use_tls: bool = True,
        timeout: int = 10,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name
        self.ttl_minutes = ttl_minutes
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SMTPMailer":
        return cls(
            host=cfg.SMTP_HOST,
            port=cfg.SMTP_PORT,
            username=cfg.SMTP_USERNAME,
            password=cfg.SMTP_PASSWORD,
            from_email=cfg.SMTP_FROM_EMAIL,
            from_name=cfg.SMTP_FROM_NAME,
            ttl_minutes=cfg.OTP_TTL_MINUTES,
            use_tls=cfg.SMTP_USE_TLS,
            timeout=cfg.SMTP_TIMEOUT_SECONDS,
        )

    def build_message(self, to: str, code: str, purpose: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject_for(purpose)
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to
        msg.attach(MIMEText(render_otp_body(code, purpose, self.ttl_minutes), "html", "utf-8"))
        return msg

    def send_otp(self, to: str, code: str, purpose: str) -> None:
        msg = self.build_message(to, code, purpose)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("otp mail failed purpose=%s error=%s", purpose, exc.__class__.__name__)
            raise DeliveryError("failed to send email") from exc


class ConsoleMailer:
    """Development mailer: logs the code instead of sending it."""

    def __init__(self):
        self.outbox: list[tuple[str, str, str]] = []

    def send_otp(self, to: str, code: str, purpose: str) -> None:
        self.outbox.append((to, code, purpose))
        logger.info("otp issued to=%s purpose=%s code=%s", to, purpose, code)


def build_mailer(cfg: Settings) -> OTPMailer:
    if cfg.MAIL_BACKEND == "console":
        return ConsoleMailer()
    return SMTPMailer.from_settings(cfg)
