import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from journal_auth.core.security import now_utc
from journal_auth.db.base import Base
from journal_auth.db.types import UTCDateTime

OTP_SENT = "otp_sent"
OTP_FAILED = "otp_failed"
LOGIN = "login"
LOGIN_FAILED = "login_failed"
ACCOUNT_VERIFIED = "account_verified"
TOKEN_REFRESHED = "token_refreshed"
LOGOUT = "logout"
PASSWORD_CHANGED = "password_changed"
PASSWORD_RESET = "password_reset"

EVENT_TYPES = frozenset({
    OTP_SENT,
    OTP_FAILED,
    LOGIN,
    LOGIN_FAILED,
    ACCOUNT_VERIFIED,
    TOKEN_REFRESHED,
    LOGOUT,
    PASSWORD_CHANGED,
    PASSWORD_RESET,
})


class AuthEvent(Base):
    __tablename__ = "auth_events"

    id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(sa.Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    ip: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=now_utc)
    meta: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)

    __table_args__ = (
        sa.Index("ix_auth_events_user_created", "user_id", sa.text("created_at DESC")),
    )
