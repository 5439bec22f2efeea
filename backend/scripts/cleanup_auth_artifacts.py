from datetime import timedelta

from journal_auth.core.config import settings
from journal_auth.core.errors import PersistenceError
from journal_auth.core.logging import configure_logging, get_logger
from journal_auth.core.security import now_utc
from journal_auth.db.session import SessionLocal
from journal_auth.repositories.sql import SqlAuthEventRepository, SqlOTPRepository, SqlRefreshTokenRepository

logger = get_logger("cleanup")


def run(db, now=None) -> dict[str, int]:
    now = now or now_utc()
    # Expiry is also checked live, so deleting late never affects correctness.
    return {
        "otps": SqlOTPRepository(db).delete_expired(now - timedelta(days=settings.AUTH_OTP_RETENTION_DAYS)),
        "refresh_tokens": SqlRefreshTokenRepository(db).delete_expired(
            now - timedelta(days=settings.AUTH_REFRESH_RETENTION_DAYS)
        ),
        "auth_events": SqlAuthEventRepository(db).delete_older_than(
            now - timedelta(days=settings.AUTH_EVENTS_RETENTION_DAYS)
        ),
    }


def main():
    configure_logging(settings.LOG_LEVEL)
    db = SessionLocal()
    try:
        counts = run(db)
    except PersistenceError:
        logger.exception("cleanup failed")
        raise
    finally:
        db.close()
    logger.info(
        "cleanup completed otps=%s refresh_tokens=%s auth_events=%s",
        counts["otps"],
        counts["refresh_tokens"],
        counts["auth_events"],
    )


if __name__ == "__main__":
    main()
