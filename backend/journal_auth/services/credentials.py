"""Credential and session lifecycle.

``CredentialService`` turns an email address into a verified identity and
issues, rotates and revokes the sessions that represent it. It holds no
mutable state of its own; everything lives behind the repository contracts,
and concurrent calls for the same user rely on their row-level atomicity.
"""
from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from journal_auth.core.config import Settings
from journal_auth.core.errors import (
    AccountNotActive,
    AccountNotVerified,
    InvalidCredentials,
    InvalidOTP,
    InvalidToken,
    OTPConsumed,
    OTPExpired,
    OTPMaxAttempts,
    TokenExpired,
    TokenRevoked,
)
from journal_auth.core.logging import get_logger
from journal_auth.core.security import (
    hash_password,
    hash_refresh_token,
    now_utc,
    otp_hash,
    random_otp_code,
    random_refresh_token,
    verify_otp,
    verify_password,
)
from journal_auth.core.tokens import TokenSigner
from journal_auth.models import AuthEvent, OneTimePassword, User
from journal_auth.models import auth_event as event_types
from journal_auth.models.otp import PURPOSE_REGISTER, PURPOSE_RESET_PASSWORD
from journal_auth.repositories.contracts import (
    AuthEventRepository,
    OTPRepository,
    RefreshTokenRepository,
    UserRepository,
)
from journal_auth.services.audit import audit
from journal_auth.services.mailer import OTPMailer

logger = get_logger("credentials")


@dataclass(frozen=True)
class CredentialPolicy:
    otp_pepper: str
    otp_ttl: timedelta
    otp_max_attempts: int
    refresh_ttl: timedelta
    refresh_pepper: str = ""

    @classmethod
    def from_settings(cls, cfg: Settings) -> "CredentialPolicy":
        return cls(
            otp_pepper=cfg.OTP_PEPPER,
            otp_ttl=timedelta(minutes=cfg.OTP_TTL_MINUTES),
            otp_max_attempts=cfg.OTP_MAX_ATTEMPTS,
            refresh_ttl=timedelta(days=cfg.JWT_REFRESH_DAYS),
            refresh_pepper=cfg.REFRESH_TOKEN_PEPPER,
        )


@dataclass(frozen=True)
class UserSnapshot:
    id: uuid.UUID
    email: str
    username: str | None
    role: str
    is_active: bool
    is_verified: bool
    created_at: datetime

    @classmethod
    def of(cls, user: User) -> "UserSnapshot":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            role=user.role,
            is_active=user.is_active,
            is_verified=user.is_verified,
            created_at=user.created_at,
        )


@dataclass(frozen=True)
class SessionPair:
    access_token: str
    refresh_token: str
    expires_in: int
    user: UserSnapshot
    token_type: str = "bearer"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialService:
    def __init__(
        self,
        *,
        users: UserRepository,
        otps: OTPRepository,
        refresh_tokens: RefreshTokenRepository,
        events: AuthEventRepository,
        signer: TokenSigner,
        mailer: OTPMailer,
        policy: CredentialPolicy,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.users = users
        self.otps = otps
        self.refresh_tokens = refresh_tokens
        self.events = events
        self.signer = signer
        self.mailer = mailer
        self.policy = policy
        self.clock = clock

    # registration & verification

    def register(
        self,
        email: str,
        username: str | None = None,
        password: str | None = None,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Create-or-fetch the user and send a ``register`` code.

        An existing account is never modified here: a second registration
        for the same email only issues a fresh code.
        """
        email = normalize_email(email)
        password_hash = hash_password(password) if password else None
        user = self.users.upsert(email, username, password_hash)
        self._issue_otp(user, PURPOSE_REGISTER, ip, user_agent)

    def verify_otp(self, email: str, code: str, *, ip: str | None = None, user_agent: str | None = None) -> SessionPair:
        user = self.users.find_by_email(normalize_email(email))
        if user is None:
            raise InvalidOTP()
        self._redeem_otp(user, PURPOSE_REGISTER, code, ip, user_agent)

        self.users.activate(user.id)
        audit(self.events, user.id, event_types.ACCOUNT_VERIFIED, ip, user_agent)
        logger.info("account verified user_id=%s", user.id)
        return self._issue_session(self.users.find_by_id(user.id) or user)

    # login & passwords

    def login(self, email: str, password: str, *, ip: str | None = None, user_agent: str | None = None) -> SessionPair:
        user = self.users.find_by_email(normalize_email(email))
        if user is None:
            raise InvalidCredentials()
        if not user.is_verified:
            raise AccountNotVerified()
        if not user.is_active:
            raise AccountNotActive()
        if user.password_hash is None:
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            audit(self.events, user.id, event_types.LOGIN_FAILED, ip, user_agent)
            raise InvalidCredentials()

        audit(self.events, user.id, event_types.LOGIN, ip, user_agent)
        return self._issue_session(user)

    def forgot_password(self, email: str, *, ip: str | None = None, user_agent: str | None = None) -> None:
        self.request_otp(email, PURPOSE_RESET_PASSWORD, ip=ip, user_agent=user_agent)

    def reset_password(
        self,
        email: str,
        code: str,
        new_password: str,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        user = self.users.find_by_email(normalize_email(email))
        if user is None:
            raise InvalidOTP()
        self._redeem_otp(user, PURPOSE_RESET_PASSWORD, code, ip, user_agent)

        self.users.update_password(user.id, hash_password(new_password))
        revoked = self.refresh_tokens.revoke_all_for_user(user.id)
        audit(self.events, user.id, event_types.PASSWORD_RESET, ip, user_agent, {"revoked_sessions": revoked})
        logger.info("password reset user_id=%s revoked_sessions=%s", user.id, revoked)

    def change_password(
        self,
        user_id: uuid.UUID,
        old_password: str,
        new_password: str,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        user = self.users.find_by_id(user_id)
        if user is None or user.password_hash is None:
            raise InvalidCredentials()
        if not verify_password(old_password, user.password_hash):
            raise InvalidCredentials()

        self.users.update_password(user.id, hash_password(new_password))
        revoked = self.refresh_tokens.revoke_all_for_user(user.id)
        audit(self.events, user.id, event_types.PASSWORD_CHANGED, ip, user_agent, {"revoked_sessions": revoked})

    def request_otp(
        self,
        email: str,
        purpose: str,
        *,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        user = self.users.find_by_email(normalize_email(email))
        if user is None:
            # Same outcome as a real send so callers cannot enumerate accounts.
            return
        self._issue_otp(user, purpose, ip, user_agent)

    # sessions

    def refresh(self, refresh_token: str, *, ip: str | None = None, user_agent: str | None = None) -> SessionPair:
        record = self.refresh_tokens.find_by_hash(self._hash_secret(refresh_token))
        if record is None:
            raise InvalidToken()
        if record.revoked:
            raise TokenRevoked()
        if self.clock() > record.expires_at:
            raise TokenExpired()

        user = self.users.find_by_id(record.user_id)
        if user is None:
            raise InvalidToken()

        access_token = self.signer.sign(str(user.id), user.email, user.role)
        secret, replacement = self._mint_refresh_token(user.id)
        if not self.refresh_tokens.revoke(record.id, replaced_by=replacement.id):
            # A concurrent refresh with the same secret got there first.
            self.refresh_tokens.revoke(replacement.id)
            logger.warning("refresh rotation lost race token_id=%s user_id=%s", record.id, user.id)
            raise TokenRevoked()

        audit(self.events, user.id, event_types.TOKEN_REFRESHED, ip, user_agent, {"rotated_from": str(record.id)})
        return SessionPair(
            access_token=access_token,
            refresh_token=secret,
            expires_in=self.signer.lifetime_seconds,
            user=UserSnapshot.of(user),
        )

    def logout(self, refresh_token: str, *, ip: str | None = None, user_agent: str | None = None) -> None:
        record = self.refresh_tokens.find_by_hash(self._hash_secret(refresh_token))
        if record is None:
            return
        if self.refresh_tokens.revoke(record.id):
            audit(self.events, record.user_id, event_types.LOGOUT, ip, user_agent)

    # reads

    def get_user(self, user_id: uuid.UUID) -> UserSnapshot:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise InvalidToken("unknown user")
        return UserSnapshot.of(user)

    def recent_events(self, user_id: uuid.UUID, limit: int = 20) -> list[AuthEvent]:
        return self.events.list_for_user(user_id, limit)

    # internals

    def _issue_otp(self, user: User, purpose: str, ip: str | None, user_agent: str | None) -> OneTimePassword:
        code = random_otp_code()
        record = self.otps.create(
            user.id,
            purpose,
            otp_hash(code, self.policy.otp_pepper),
            self.clock() + self.policy.otp_ttl,
            ip,
            user_agent,
        )
        # The row stays valid if delivery fails; the caller can resend.
        self.mailer.send_otp(user.email, code, purpose)
        audit(self.events, user.id, event_types.OTP_SENT, ip, user_agent, {"purpose": purpose})
        logger.info("otp issued user_id=%s purpose=%s otp_id=%s", user.id, purpose, record.id)
        return record

    def _redeem_otp(self, user: User, purpose: str, code: str, ip: str | None, user_agent: str | None) -> None:
        """Run the OTP state machine; return normally only when ``code`` was accepted.

        Expiry and exhaustion are checked, and retire the record, before the
        code is compared. Every comparison first claims one attempt from the
        store, so concurrent guesses share a single budget.
        """
        record = self.otps.find_latest_unconsumed(user.id, purpose) or self.otps.find_latest(user.id, purpose)
        if record is None:
            raise InvalidOTP()
        if record.consumed:
            raise OTPConsumed()
        if self.clock() > record.expires_at:
            self.otps.mark_consumed(record.id)
            raise OTPExpired()
        if not self.otps.increment_attempts(record.id, self.policy.otp_max_attempts):
            if self.otps.mark_consumed(record.id):
                raise OTPMaxAttempts()
            # Retired by a concurrent request.
            raise OTPConsumed()
        if not verify_otp(code, self.policy.otp_pepper, record.otp_hash):
            audit(self.events, user.id, event_types.OTP_FAILED, ip, user_agent, {"purpose": purpose})
            raise InvalidOTP()
        if not self.otps.mark_consumed(record.id):
            # Redeemed concurrently by another request.
            raise OTPConsumed()

    def _hash_secret(self, secret: str) -> str:
        return hash_refresh_token(secret, self.policy.refresh_pepper)

    def _mint_refresh_token(self, user_id: uuid.UUID):
        secret = random_refresh_token()
        row = self.refresh_tokens.create(user_id, self._hash_secret(secret), self.clock() + self.policy.refresh_ttl)
        return secret, row

    def _issue_session(self, user: User) -> SessionPair:
        access_token = self.signer.sign(str(user.id), user.email, user.role)
        secret, _ = self._mint_refresh_token(user.id)
        logger.info("session issued user_id=%s", user.id)
        return SessionPair(
            access_token=access_token,
            refresh_token=secret,
            expires_in=self.signer.lifetime_seconds,
            user=UserSnapshot.of(user),
        )
