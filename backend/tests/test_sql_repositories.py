from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from journal_auth.core.errors import PersistenceError
from journal_auth.core.security import now_utc
from journal_auth.repositories.sql import (
    SqlAuthEventRepository,
    SqlOTPRepository,
    SqlRefreshTokenRepository,
    SqlUserRepository,
)
from journal_auth.services.credentials import CredentialPolicy, CredentialService
from tests.testkit import CapturingMailer, build_signer


def test_user_upsert_is_create_or_fetch(db):
    users = SqlUserRepository(db)
    created = users.upsert("a@example.com", "alice", "hash-1")
    again = users.upsert("a@example.com", "other", "hash-2")

    assert again.id == created.id
    assert again.username == "alice"
    assert again.password_hash == "hash-1"
    assert created.is_active is False and created.is_verified is False
    assert created.role == "user"


def test_user_activate_and_update_password(db):
    users = SqlUserRepository(db)
    user = users.upsert("a@example.com", None, None)

    users.activate(user.id)
    users.update_password(user.id, "new-hash")

    reloaded = users.find_by_id(user.id)
    assert reloaded.is_active and reloaded.is_verified
    assert reloaded.password_hash == "new-hash"
    assert users.find_by_email("missing@example.com") is None


def test_timestamps_come_back_timezone_aware(db):
    users = SqlUserRepository(db)
    otps = SqlOTPRepository(db)
    user = users.upsert("a@example.com", None, None)
    expires = now_utc() + timedelta(minutes=5)
    otps.create(user.id, "register", "h", expires, None, None)
    db.expunge_all()

    row = otps.find_latest(user.id, "register")
    assert row.expires_at.tzinfo is not None
    assert abs((row.expires_at - expires).total_seconds()) < 1


def test_otp_latest_and_conditional_consume(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    otps = SqlOTPRepository(db)
    expires = now_utc() + timedelta(minutes=5)

    first = otps.create(user.id, "register", "h1", expires, "1.1.1.1", "ua")
    second = otps.create(user.id, "register", "h2", expires, "1.1.1.1", "ua")
    otps.create(user.id, "reset_password", "h3", expires, None, None)

    assert otps.find_latest_unconsumed(user.id, "register").id == second.id

    assert otps.mark_consumed(second.id) is True
    assert otps.mark_consumed(second.id) is False
    assert otps.find_latest_unconsumed(user.id, "register").id == first.id

    otps.mark_consumed(first.id)
    assert otps.find_latest_unconsumed(user.id, "register") is None
    latest = otps.find_latest(user.id, "register")
    assert latest.id == second.id
    assert latest.consumed is True


def test_otp_attempts_increment_stops_after_consume(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    otps = SqlOTPRepository(db)
    row = otps.create(user.id, "register", "h", now_utc() + timedelta(minutes=5), None, None)

    assert otps.increment_attempts(row.id, 5) is True
    assert otps.increment_attempts(row.id, 5) is True
    otps.mark_consumed(row.id)
    assert otps.increment_attempts(row.id, 5) is False

    assert otps.find_latest(user.id, "register").attempts == 2


def test_otp_attempts_increment_respects_budget(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    otps = SqlOTPRepository(db)
    row = otps.create(user.id, "register", "h", now_utc() + timedelta(minutes=5), None, None)

    claims = [otps.increment_attempts(row.id, 3) for _ in range(5)]

    assert claims == [True, True, True, False, False]
    assert otps.find_latest(user.id, "register").attempts == 3


def test_otp_delete_expired(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    otps = SqlOTPRepository(db)
    now = now_utc()
    otps.create(user.id, "register", "old", now - timedelta(minutes=1), None, None)
    fresh = otps.create(user.id, "register", "new", now + timedelta(minutes=5), None, None)

    assert otps.delete_expired(now) == 1
    assert otps.find_latest(user.id, "register").id == fresh.id


def test_refresh_token_revoke_is_at_most_once(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    tokens = SqlRefreshTokenRepository(db)
    expires = now_utc() + timedelta(days=7)
    old = tokens.create(user.id, "hash-old", expires)
    new = tokens.create(user.id, "hash-new", expires)

    assert tokens.revoke(old.id, replaced_by=new.id) is True
    assert tokens.revoke(old.id, replaced_by=None) is False

    row = tokens.find_by_hash("hash-old")
    assert row.revoked is True
    assert row.replaced_by == new.id
    assert tokens.find_by_hash("nope") is None


def test_refresh_token_revoke_all_and_delete_expired(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    tokens = SqlRefreshTokenRepository(db)
    now = now_utc()
    expired = tokens.create(user.id, "h1", now - timedelta(seconds=1))
    live = tokens.create(user.id, "h2", now + timedelta(days=1))
    tokens.revoke(expired.id, replaced_by=live.id)

    assert tokens.revoke_all_for_user(user.id) == 1
    assert tokens.revoke_all_for_user(user.id) == 0
    assert tokens.delete_expired(now) == 1
    assert tokens.find_by_hash("h1") is None
    assert tokens.find_by_hash("h2").revoked is True


def test_auth_events_newest_first_and_retention(db):
    user = SqlUserRepository(db).upsert("a@example.com", None, None)
    events = SqlAuthEventRepository(db)
    events.create(user.id, "otp_sent", "1.1.1.1", "ua", {"purpose": "register"})
    events.create(user.id, "account_verified", "1.1.1.1", "ua")
    events.create(None, "login_failed", None, None)

    rows = events.list_for_user(user.id)
    assert [r.event_type for r in rows] == ["account_verified", "otp_sent"]
    assert rows[1].meta == {"purpose": "register"}
    assert events.delete_older_than(now_utc() + timedelta(seconds=1)) == 3


def test_store_failures_become_persistence_errors(db, monkeypatch):
    users = SqlUserRepository(db)

    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is gone"))

    monkeypatch.setattr(db, "execute", broken)
    with pytest.raises(PersistenceError):
        users.find_by_email("a@example.com")


def test_service_over_sql_repositories(db):
    mailer = CapturingMailer()
    service = CredentialService(
        users=SqlUserRepository(db),
        otps=SqlOTPRepository(db),
        refresh_tokens=SqlRefreshTokenRepository(db),
        events=SqlAuthEventRepository(db),
        signer=build_signer(),
        mailer=mailer,
        policy=CredentialPolicy(
            otp_pepper="pepper",
            otp_ttl=timedelta(minutes=5),
            otp_max_attempts=5,
            refresh_ttl=timedelta(days=7),
        ),
    )
    service.register("a@example.com", password="longenough1")
    session = service.verify_otp("a@example.com", mailer.last_code("a@example.com"))
    rotated = service.refresh(session.refresh_token)
    service.logout(rotated.refresh_token)

    events = [e.event_type for e in service.recent_events(session.user.id)]
    assert events == ["logout", "token_refreshed", "account_verified", "otp_sent"]
