"""In-process implementations of the storage contracts.

Used by the test suite and local development. A single lock per store makes
each call atomic, matching the row-level guarantees of the SQL repositories.
"""
from __future__ import annotations

import itertools
import threading
import uuid
from datetime import datetime

from journal_auth.core.security import now_utc
from journal_auth.models import AuthEvent, OneTimePassword, RefreshToken, User


class MemoryUserRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self.rows: dict[uuid.UUID, User] = {}

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            return next((u for u in self.rows.values() if u.email == email), None)

    def find_by_id(self, user_id: uuid.UUID) -> User | None:
        with self._lock:
            return self.rows.get(user_id)

    def upsert(self, email: str, username: str | None, password_hash: str | None) -> User:
        with self._lock:
            for user in self.rows.values():
                if user.email == email:
                    return user
            now = now_utc()
            user = User(
                id=uuid.uuid4(),
                email=email,
                username=username,
                password_hash=password_hash,
                is_active=False,
                is_verified=False,
                role="user",
                created_at=now,
                updated_at=now,
            )
            self.rows[user.id] = user
            return user

    def activate(self, user_id: uuid.UUID) -> None:
        with self._lock:
            user = self.rows.get(user_id)
            if user is not None:
                user.is_active = True
                user.is_verified = True
                user.updated_at = now_utc()

    def update_password(self, user_id: uuid.UUID, password_hash: str) -> None:
        with self._lock:
            user = self.rows.get(user_id)
            if user is not None:
                user.password_hash = password_hash
                user.updated_at = now_utc()


class MemoryOTPRepository:
    def __init__(self):
        self._lock = threading.Lock()
        # insertion order doubles as creation order
        self.rows: list[OneTimePassword] = []

    def create(self, user_id, purpose, otp_hash, expires_at, ip, user_agent) -> OneTimePassword:
        row = OneTimePassword(
            id=uuid.uuid4(),
            user_id=user_id,
            purpose=purpose,
            otp_hash=otp_hash,
            created_at=now_utc(),
            expires_at=expires_at,
            attempts=0,
            consumed=False,
            sent_ip=ip,
            sent_user_agent=user_agent,
        )
        with self._lock:
            self.rows.append(row)
        return row

    def _get(self, otp_id: uuid.UUID) -> OneTimePassword | None:
        return next((r for r in self.rows if r.id == otp_id), None)

    def find_latest_unconsumed(self, user_id: uuid.UUID, purpose: str) -> OneTimePassword | None:
        with self._lock:
            for row in reversed(self.rows):
                if row.user_id == user_id and row.purpose == purpose and not row.consumed:
                    return row
        return None

    def find_latest(self, user_id: uuid.UUID, purpose: str) -> OneTimePassword | None:
        with self._lock:
            for row in reversed(self.rows):
                if row.user_id == user_id and row.purpose == purpose:
                    return row
        return None

    def increment_attempts(self, otp_id: uuid.UUID, max_attempts: int) -> bool:
        with self._lock:
            row = self._get(otp_id)
            if row is None or row.consumed or row.attempts >= max_attempts:
                return False
            row.attempts += 1
            return True

    def mark_consumed(self, otp_id: uuid.UUID) -> bool:
        with self._lock:
            row = self._get(otp_id)
            if row is None or row.consumed:
                return False
            row.consumed = True
            return True

    def delete_expired(self, cutoff: datetime) -> int:
        with self._lock:
            keep = [r for r in self.rows if r.expires_at >= cutoff]
            removed = len(self.rows) - len(keep)
            self.rows = keep
        return removed


class MemoryRefreshTokenRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self.rows: dict[uuid.UUID, RefreshToken] = {}

    def create(self, user_id: uuid.UUID, token_hash: str, expires_at: datetime) -> RefreshToken:
        row = RefreshToken(
            id=uuid.uuid4(),
            user_id=user_id,
            token_hash=token_hash,
            created_at=now_utc(),
            expires_at=expires_at,
            revoked=False,
            replaced_by=None,
        )
        with self._lock:
            self.rows[row.id] = row
        return row

    def find_by_hash(self, token_hash: str) -> RefreshToken | None:
        with self._lock:
            return next((r for r in self.rows.values() if r.token_hash == token_hash), None)

    def revoke(self, token_id: uuid.UUID, replaced_by: uuid.UUID | None = None) -> bool:
        with self._lock:
            row = self.rows.get(token_id)
            if row is None or row.revoked:
                return False
            row.revoked = True
            if replaced_by is not None:
                row.replaced_by = replaced_by
            return True

    def revoke_all_for_user(self, user_id: uuid.UUID) -> int:
        count = 0
        with self._lock:
            for row in self.rows.values():
                if row.user_id == user_id and not row.revoked:
                    row.revoked = True
                    count += 1
        return count

    def delete_expired(self, cutoff: datetime) -> int:
        with self._lock:
            doomed = {k for k, r in self.rows.items() if r.expires_at < cutoff}
            for key in doomed:
                del self.rows[key]
            for row in self.rows.values():
                if row.replaced_by in doomed:
                    row.replaced_by = None
        return len(doomed)


class MemoryAuthEventRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.rows: list[AuthEvent] = []

    def create(self, user_id, event_type, ip, user_agent, meta=None) -> None:
        with self._lock:
            self.rows.append(
                AuthEvent(
                    id=next(self._ids),
                    user_id=user_id,
                    event_type=event_type,
                    ip=ip,
                    user_agent=user_agent,
                    created_at=now_utc(),
                    meta=dict(meta) if meta else None,
                )
            )

    def list_for_user(self, user_id: uuid.UUID, limit: int = 50) -> list[AuthEvent]:
        with self._lock:
            rows = [r for r in self.rows if r.user_id == user_id]
        return list(reversed(rows))[:limit]

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            keep = [r for r in self.rows if r.created_at >= cutoff]
            removed = len(self.rows) - len(keep)
            self.rows = keep
        return removed

    def types(self) -> list[str]:
        with self._lock:
            return [r.event_type for r in self.rows]
