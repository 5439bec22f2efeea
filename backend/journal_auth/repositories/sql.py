from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from journal_auth.core.errors import PersistenceError
from journal_auth.core.logging import get_logger
from journal_auth.core.security import now_utc
from journal_auth.models import AuthEvent, OneTimePassword, RefreshToken, User

logger = get_logger("repositories")


@contextmanager
def _guard(db: Session, action: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("store call failed action=%s error=%s", action, exc.__class__.__name__)
        raise PersistenceError(f"{action} failed") from exc


def _fresh(stmt):
    # Rows may already sit in the identity map from an earlier call.
    return stmt.execution_options(populate_existing=True)


class SqlUserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> User | None:
        with _guard(self.db, "user.find_by_email"):
            return self.db.execute(_fresh(sa.select(User).where(User.email == email))).scalar_one_or_none()

    def find_by_id(self, user_id: uuid.UUID) -> User | None:
        with _guard(self.db, "user.find_by_id"):
            return self.db.execute(_fresh(sa.select(User).where(User.id == user_id))).scalar_one_or_none()

    def upsert(self, email: str, username: str | None, password_hash: str | None) -> User:
        existing = self.find_by_email(email)
        if existing is not None:
            return existing
        user = User(
            email=email,
            username=username,
            password_hash=password_hash,
            is_active=False,
            is_verified=False,
            role="user",
        )
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration for the same email.
            self.db.rollback()
            winner = self.find_by_email(email)
            if winner is None:
                raise PersistenceError("user.upsert failed")
            return winner
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError("user.upsert failed") from exc
        return user

    def activate(self, user_id: uuid.UUID) -> None:
        with _guard(self.db, "user.activate"):
            self.db.execute(
                sa.update(User)
                .where(User.id == user_id)
                .values(is_active=True, is_verified=True, updated_at=now_utc())
            )
            self.db.commit()

    def update_password(self, user_id: uuid.UUID, password_hash: str) -> None:
        with _guard(self.db, "user.update_password"):
            self.db.execute(
                sa.update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, updated_at=now_utc())
            )
            self.db.commit()


class SqlOTPRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id, purpose, otp_hash, expires_at, ip, user_agent) -> OneTimePassword:
        row = OneTimePassword(
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
        with _guard(self.db, "otp.create"):
            self.db.add(row)
            self.db.commit()
        return row

    def _latest(self, user_id: uuid.UUID, purpose: str, *, unconsumed_only: bool) -> OneTimePassword | None:
        stmt = sa.select(OneTimePassword).where(
            OneTimePassword.user_id == user_id,
            OneTimePassword.purpose == purpose,
        )
        if unconsumed_only:
            stmt = stmt.where(OneTimePassword.consumed.is_(False))
        stmt = stmt.order_by(OneTimePassword.created_at.desc()).limit(1)
        with _guard(self.db, "otp.find_latest"):
            return self.db.execute(_fresh(stmt)).scalar_one_or_none()

    def find_latest_unconsumed(self, user_id: uuid.UUID, purpose: str) -> OneTimePassword | None:
        return self._latest(user_id, purpose, unconsumed_only=True)

    def find_latest(self, user_id: uuid.UUID, purpose: str) -> OneTimePassword | None:
        return self._latest(user_id, purpose, unconsumed_only=False)

    def increment_attempts(self, otp_id: uuid.UUID, max_attempts: int) -> bool:
        with _guard(self.db, "otp.increment_attempts"):
            result = self.db.execute(
                sa.update(OneTimePassword)
                .where(
                    OneTimePassword.id == otp_id,
                    OneTimePassword.consumed.is_(False),
                    OneTimePassword.attempts < max_attempts,
                )
                .values(attempts=OneTimePassword.attempts + 1)
            )
            self.db.commit()
        return result.rowcount == 1

    def mark_consumed(self, otp_id: uuid.UUID) -> bool:
        with _guard(self.db, "otp.mark_consumed"):
            result = self.db.execute(
                sa.update(OneTimePassword)
                .where(OneTimePassword.id == otp_id, OneTimePassword.consumed.is_(False))
                .values(consumed=True)
            )
            self.db.commit()
        return result.rowcount == 1

    def delete_expired(self, cutoff: datetime) -> int:
        with _guard(self.db, "otp.delete_expired"):
            result = self.db.execute(sa.delete(OneTimePassword).where(OneTimePassword.expires_at < cutoff))
            self.db.commit()
        return result.rowcount


class SqlRefreshTokenRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: uuid.UUID, token_hash: str, expires_at: datetime) -> RefreshToken:
        row = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            created_at=now_utc(),
            expires_at=expires_at,
            revoked=False,
            replaced_by=None,
        )
        with _guard(self.db, "refresh_token.create"):
            self.db.add(row)
            self.db.commit()
        return row

    def find_by_hash(self, token_hash: str) -> RefreshToken | None:
        with _guard(self.db, "refresh_token.find_by_hash"):
            return self.db.execute(
                _fresh(sa.select(RefreshToken).where(RefreshToken.token_hash == token_hash))
            ).scalar_one_or_none()

    def revoke(self, token_id: uuid.UUID, replaced_by: uuid.UUID | None = None) -> bool:
        values = {"revoked": True}
        if replaced_by is not None:
            values["replaced_by"] = replaced_by
        with _guard(self.db, "refresh_token.revoke"):
            result = self.db.execute(
                sa.update(RefreshToken)
                .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
                .values(**values)
            )
            self.db.commit()
        return result.rowcount == 1

    def revoke_all_for_user(self, user_id: uuid.UUID) -> int:
        with _guard(self.db, "refresh_token.revoke_all_for_user"):
            result = self.db.execute(
                sa.update(RefreshToken)
                .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
                .values(revoked=True)
            )
            self.db.commit()
        return result.rowcount

    def delete_expired(self, cutoff: datetime) -> int:
        with _guard(self.db, "refresh_token.delete_expired"):
            # Drop chain pointers into rows about to disappear first.
            doomed = sa.select(RefreshToken.id).where(RefreshToken.expires_at < cutoff)
            self.db.execute(
                sa.update(RefreshToken).where(RefreshToken.replaced_by.in_(doomed)).values(replaced_by=None)
            )
            result = self.db.execute(sa.delete(RefreshToken).where(RefreshToken.expires_at < cutoff))
            self.db.commit()
        return result.rowcount


class SqlAuthEventRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id, event_type, ip, user_agent, meta=None) -> None:
        row = AuthEvent(
            user_id=user_id,
            event_type=event_type,
            ip=ip,
            user_agent=user_agent,
            created_at=now_utc(),
            meta=meta,
        )
        with _guard(self.db, "auth_event.create"):
            self.db.add(row)
            self.db.commit()

    def list_for_user(self, user_id: uuid.UUID, limit: int = 50) -> list[AuthEvent]:
        stmt = (
            sa.select(AuthEvent)
            .where(AuthEvent.user_id == user_id)
            .order_by(AuthEvent.created_at.desc(), AuthEvent.id.desc())
            .limit(limit)
        )
        with _guard(self.db, "auth_event.list_for_user"):
            return list(self.db.execute(_fresh(stmt)).scalars())

    def delete_older_than(self, cutoff: datetime) -> int:
        with _guard(self.db, "auth_event.delete_older_than"):
            result = self.db.execute(sa.delete(AuthEvent).where(AuthEvent.created_at < cutoff))
            self.db.commit()
        return result.rowcount
