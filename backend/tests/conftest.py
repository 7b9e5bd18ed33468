# backend/tests/conftest.py
"""
Pytest configuration for the StudySphere backend.

Settings are read once at import time, so the test environment is pinned
here before any ``studysphere`` module is imported.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["PAYMENT_MODE"] = "development"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-studysphere")
os.environ.setdefault("PLATFORM_FEE_PERCENT", "0")

from decimal import Decimal  # noqa: E402
from typing import Callable  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from studysphere.database import Base  # noqa: E402
import studysphere.models  # noqa: E402,F401
from studysphere.models.profile import StudentProfile, TutorProfile  # noqa: E402
from tests.factories import STUDENT_ID, TUTOR_ID  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Session:
    """Fresh in-memory database per test; services commit for real."""
    SessionLocal = sessionmaker(
        bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_tutor(db: Session) -> Callable[..., TutorProfile]:
    def _make(user_id: str = TUTOR_ID, hourly_rate: str = "40.00") -> TutorProfile:
        tutor = TutorProfile(user_id=user_id, display_name=user_id, hourly_rate=Decimal(hourly_rate))
        db.add(tutor)
        db.commit()
        return tutor

    return _make


@pytest.fixture
def make_student(db: Session) -> Callable[..., StudentProfile]:
    def _make(user_id: str = STUDENT_ID) -> StudentProfile:
        student = StudentProfile(user_id=user_id, display_name=user_id)
        db.add(student)
        db.commit()
        return student

    return _make


@pytest.fixture
def profiles(make_tutor, make_student):
    """One tutor at 40.00/h and one student."""
    return make_tutor(), make_student()
