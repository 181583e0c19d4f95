import os

# The app module builds its engine at import time; keep it off the production database.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_ISOLATION_LEVEL"] = "SERIALIZABLE"

from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient #fake http client that calls FastAPI routes without running a real server.
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.security import create_access_token
from app.db.base import Base
from app.main import app
from app.models.class_group import ClassGroup, SchoolClass
from app.models.classroom import Classroom
from app.models.subject import Subject
from app.models.teacher_profile import TeacherProfile
from app.models.term import Term
from app.models.user import User, UserRole
from app.schemas.timetable import PeriodIn


def seed_school(db) -> SimpleNamespace:
    term = Term(name="Spring 2026", start_date=date(2026, 1, 12), end_date=date(2026, 6, 19))
    grade_10 = ClassGroup(name="Grade 10")
    grade_11 = ClassGroup(name="Grade 11")
    db.add_all([term, grade_10, grade_11])
    db.flush()
    class_10a = SchoolClass(name="10-A", class_group_id=grade_10.id)
    db.add(class_10a)

    math = Subject(name="Math", code="MATH-10")
    science = Subject(name="Science", code="SCI-10")
    english = Subject(name="English", code="ENG-10")
    room_101 = Classroom(name="Room 101", building="Main", capacity=30)
    room_102 = Classroom(name="Room 102", building="Main", capacity=30)
    lab = Classroom(name="Lab", building="Annex", capacity=24)
    db.add_all([math, science, english, room_101, room_102, lab])

    admin = User(name="Admin", email="admin@example.com", role=UserRole.admin)
    scheduler = User(name="Sam Scheduler", email="scheduler@example.com", role=UserRole.scheduler)
    student = User(name="Stu Dent", email="student@example.com", role=UserRole.student)
    jane = User(name="Jane", email="jane@example.com", role=UserRole.teacher)
    john = User(name="John", email="john@example.com", role=UserRole.teacher)
    # A teacher-role user nobody has created a teacher profile for yet.
    ghost = User(name="Ghost", email="ghost@example.com", role=UserRole.teacher)
    db.add_all([admin, scheduler, student, jane, john, ghost])
    db.flush()

    jane_profile = TeacherProfile(user_id=jane.id, specialization="Mathematics")
    john_profile = TeacherProfile(user_id=john.id, specialization="Science")
    db.add_all([jane_profile, john_profile])
    db.commit()

    return SimpleNamespace(
        term_id=term.id,
        grade_10_id=grade_10.id,
        grade_11_id=grade_11.id,
        class_10a_id=class_10a.id,
        math_id=math.id,
        science_id=science.id,
        english_id=english.id,
        room_101_id=room_101.id,
        room_102_id=room_102.id,
        lab_id=lab.id,
        admin_id=admin.id,
        scheduler_id=scheduler.id,
        student_id=student.id,
        jane_id=jane.id,
        john_id=john.id,
        ghost_id=ghost.id,
        jane_profile_id=jane_profile.id,
        john_profile_id=john_profile.id,
    )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def school(session_factory):
    db = session_factory()
    try:
        return seed_school(db)
    finally:
        db.close()


@pytest.fixture()
def db_session(session_factory, school):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_period(school):
    """Build a PeriodIn the way a client would post it; defaults to Jane teaching Math in Room 101."""

    def _make(day=1, start="08:00", end="09:00", **overrides):
        payload = {
            "dayOfWeek": day,
            "startTime": start,
            "endTime": end,
            "subjectId": school.math_id,
            "classroomId": school.room_101_id,
            "teacherId": school.jane_id,
        }
        payload.update(overrides)
        return PeriodIn.model_validate(payload)

    return _make


@pytest.fixture() #test client
def client(session_factory, school):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers(school):
    return {"Authorization": f"Bearer {create_access_token(school.admin_id)}"}


@pytest.fixture()
def scheduler_headers(school):
    return {"Authorization": f"Bearer {create_access_token(school.scheduler_id)}"}


@pytest.fixture()
def student_headers(school):
    return {"Authorization": f"Bearer {create_access_token(school.student_id)}"}
