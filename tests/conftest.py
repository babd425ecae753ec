from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import attendance_api.models  # noqa: F401
from attendance_api.core.config import Settings
from attendance_api.core.database import Base, get_db
from attendance_api.core.dependencies import get_completion_client
from attendance_api.main import app
from attendance_api.models.attendance import AttendanceRecord, AttendanceStatus
from attendance_api.models.student import Sex, Student, YearLevel
from attendance_api.services.llm import CompletionClient


class FakeCompletionClient(CompletionClient):
    """Returns scripted replies in order; an Exception reply is raised."""

    def __init__(self, replies=None):
        super().__init__(api_key="test-key", url="http://llm.invalid", model="test-model")
        self.replies = list(replies or [])
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.replies:
            raise AssertionError("unexpected completion call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs SQLAlchemy to emit BEGIN itself for SAVEPOINT to work
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def test_settings():
    return Settings(
        GROQ_API_KEY="test-key",
        CHAT_HISTORY_WINDOW=3,
        CHAT_CONTEXT_ITEM_LIMIT=20,
        CHAT_QUERY_LIMIT=100,
    )


@pytest.fixture
def fake_llm():
    return FakeCompletionClient()


@pytest.fixture
def client(session_factory, fake_llm):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_completion_client] = lambda: fake_llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_student(
    db: Session,
    name: str,
    external_id: str | None = None,
    year: YearLevel = YearLevel.YEAR_7,
    sex: Sex = Sex.FEMALE,
) -> Student:
    student = Student(name=name, external_id=external_id, year=year, sex=sex)
    db.add(student)
    db.flush()
    return student


def make_record(
    db: Session,
    student: Student,
    day: date,
    status: AttendanceStatus,
) -> AttendanceRecord:
    record = AttendanceRecord(
        external_id=student.external_id or "",
        student_id=student.id,
        attendance_date=day,
        status=status,
    )
    db.add(record)
    db.flush()
    return record
