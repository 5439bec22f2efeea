"""Storage contracts consumed by the credential service.

Every call is atomic at the row level. Conditional updates report whether
this call changed the row so two concurrent callers cannot both win.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol

from journal_auth.models import AuthEvent, OneTimePassword, RefreshToken, User


class UserRepository(Protocol):
    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: uuid.UUID) -> User | None: ...

    def upsert(self, email: str, username: str | None, password_hash: str | None) -> User:
        """Return the user for ``email``, creating an inactive, unverified one if absent.

        An existing row is returned untouched.
        """
        ...

    def activate(self, user_id: uuid.UUID) -> None: ...

    def update_password(self, user_id: uuid.UUID, password_hash: str) -> None: ...


class OTPRepository(Protocol):
    def create(
        self,
        user_id: uuid.UUID,
        purpose: str,
        otp_hash: str,
        expires_at: datetime,
        ip: str | None,
        user_agent: str | None,
    ) -> OneTimePassword: ...

    def find_latest_unconsumed(self, user_id: uuid.UUID, purpose: str) -> OneTimePassword | None: ...

    def find_latest(self, user_id: uuid.UUID, purpose: str) -> OneTimePassword | None: ...

    def increment_attempts(self, otp_id: uuid.UUID, max_attempts: int) -> bool:
        """Spend one attempt if the record is live and under ``max_attempts``.

        False when the budget is already spent or the record was consumed.
        """
        ...

    def mark_consumed(self, otp_id: uuid.UUID) -> bool:
        """Flip ``consumed`` to true; False when it already was."""
        ...

    def delete_expired(self, cutoff: datetime) -> int: ...


class RefreshTokenRepository(Protocol):
    def create(self, user_id: uuid.UUID, token_hash: str, expires_at: datetime) -> RefreshToken: ...

    def find_by_hash(self, token_hash: str) -> RefreshToken | None: ...

    def revoke(self, token_id: uuid.UUID, replaced_by: uuid.UUID | None = None) -> bool:
        """Revoke an unrevoked token; False when it was already revoked."""
        ...

    def revoke_all_for_user(self, user_id: uuid.UUID) -> int: ...

    def delete_expired(self, cutoff: datetime) -> int: ...


class AuthEventRepository(Protocol):
    def create(
        self,
        user_id: uuid.UUID | None,
        event_type: str,
        ip: str | None,
        user_agent: str | None,
        meta: dict | None = None,
    ) -> None: ...

    def list_for_user(self, user_id: uuid.UUID, limit: int = 50) -> list[AuthEvent]: ...

    def delete_older_than(self, cutoff: datetime) -> int: ...
