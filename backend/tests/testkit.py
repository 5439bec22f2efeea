from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from journal_auth.core.errors import DeliveryError
from journal_auth.core.tokens import TokenSigner
from journal_auth.repositories.memory import (
    MemoryAuthEventRepository,
    MemoryOTPRepository,
    MemoryRefreshTokenRepository,
    MemoryUserRepository,
)
from journal_auth.services.credentials import CredentialPolicy, CredentialService, SessionPair

TEST_SECRET = "test-signing-secret"
TEST_PEPPER = "test-pepper"


class ManualClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@dataclass
class CapturingMailer:
    sent: list[tuple[str, str, str]] = field(default_factory=list)
    fail: bool = False

    def send_otp(self, to: str, code: str, purpose: str) -> None:
        if self.fail:
            raise DeliveryError("mail transport unavailable")
        self.sent.append((to, code, purpose))

    def last_code(self, to: str, purpose: str = "register") -> str:
        for sent_to, code, sent_purpose in reversed(self.sent):
            if sent_to == to and sent_purpose == purpose:
                return code
        raise AssertionError(f"No {purpose} code was sent to {to}.")


def wrong_code(code: str) -> str:
    return f"{(int(code) + 1) % 1_000_000:06d}"


def build_signer(access_minutes: int = 15) -> TokenSigner:
    return TokenSigner(
        algorithm="HS256",
        signing_key=TEST_SECRET,
        verifying_key=TEST_SECRET,
        access_minutes=access_minutes,
        issuer="journal-auth-tests",
    )


@dataclass
class Harness:
    service: CredentialService
    users: MemoryUserRepository
    otps: MemoryOTPRepository
    refresh_tokens: MemoryRefreshTokenRepository
    events: MemoryAuthEventRepository
    mailer: CapturingMailer
    clock: ManualClock
    signer: TokenSigner


def build_harness(*, max_attempts: int = 5, ttl_minutes: int = 5, refresh_days: int = 7) -> Harness:
    users = MemoryUserRepository()
    otps = MemoryOTPRepository()
    refresh_tokens = MemoryRefreshTokenRepository()
    events = MemoryAuthEventRepository()
    mailer = CapturingMailer()
    clock = ManualClock()
    signer = build_signer()
    service = CredentialService(
        users=users,
        otps=otps,
        refresh_tokens=refresh_tokens,
        events=events,
        signer=signer,
        mailer=mailer,
        policy=CredentialPolicy(
            otp_pepper=TEST_PEPPER,
            otp_ttl=timedelta(minutes=ttl_minutes),
            otp_max_attempts=max_attempts,
            refresh_ttl=timedelta(days=refresh_days),
        ),
        clock=clock,
    )
    return Harness(service, users, otps, refresh_tokens, events, mailer, clock, signer)


def register_and_verify(h: Harness, email: str, password: str = "longenough1") -> SessionPair:
    h.service.register(email, password=password, ip="127.0.0.1", user_agent="pytest")
    return h.service.verify_otp(email, h.mailer.last_code(email), ip="127.0.0.1", user_agent="pytest")
