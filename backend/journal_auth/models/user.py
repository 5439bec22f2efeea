import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from journal_auth.core.security import now_utc
from journal_auth.db.base import Base
from journal_auth.db.types import UTCDateTime


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(sa.Text, unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    password_hash: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    role: Mapped[str] = mapped_column(sa.Text, nullable=False, default="user")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=now_utc)
