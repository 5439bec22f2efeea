import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from journal_auth.core.security import now_utc
from journal_auth.db.base import Base
from journal_auth.db.types import UTCDateTime

PURPOSE_REGISTER = "register"
PURPOSE_RESET_PASSWORD = "reset_password"


class OneTimePassword(Base):
    __tablename__ = "otps"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    purpose: Mapped[str] = mapped_column(sa.Text, nullable=False)
    otp_hash: Mapped[str] = mapped_column(sa.Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=now_utc)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    attempts: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    consumed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    sent_ip: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    sent_user_agent: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    __table_args__ = (
        sa.Index("ix_otps_user_purpose_created", "user_id", "purpose", sa.text("created_at DESC")),
    )
