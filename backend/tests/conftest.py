from __future__ import annotations

import os

# Settings are read at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-signing-secret")
os.environ.setdefault("MAIL_BACKEND", "console")
os.environ.setdefault("ENV", "dev")

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from journal_auth.db.base import Base
from tests.testkit import Harness, build_harness


@pytest.fixture
def harness() -> Harness:
    return build_harness()


@pytest.fixture
def db():
    engine = sa.create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import journal_auth.models  # noqa: F401

    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
