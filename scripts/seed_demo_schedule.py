"""Seed a demo term, reference data and two non-conflicting timetables.

Run:
  PYTHONPATH=backend python scripts/seed_demo_schedule.py
"""

from __future__ import annotations

from datetime import date
import logging
import os

from sqlalchemy import select

from app.core.config import get_settings
from app.core.exceptions import UniquenessError
from app.core.logging import setup_logging
from app.core.security import create_access_token
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.class_group import ClassGroup
from app.models.classroom import Classroom
from app.models.subject import Subject
from app.models.teacher_profile import TeacherProfile
from app.models.term import Term
from app.models.user import User, UserRole
from app.schemas.timetable import PeriodIn
from app.services.timetable_assembler import TimetableAssembler

logger = logging.getLogger("seed_demo_schedule")

ADMIN_EMAIL = os.getenv("DEMO_ADMIN_EMAIL", "admin.demo@example.com")
TERM_NAME = "Demo Term"

TEACHERS = {
    "jane": ("Jane Demo", "jane.demo@example.com", "Mathematics"),
    "john": ("John Demo", "john.demo@example.com", "Science"),
}
SUBJECTS = {"math": ("Math", "DEMO-MATH"), "science": ("Science", "DEMO-SCI")}
ROOMS = {"room_101": "Demo Room 101", "room_102": "Demo Room 102"}


def _get_or_create(session, model, lookup: dict, **values):
    existing = session.execute(select(model).filter_by(**lookup)).scalars().first()
    if existing is not None:
        return existing
    record = model(**lookup, **values)
    session.add(record)
    session.flush()
    return record


def _period(day: int, start: str, end: str, *, subject, room, teacher) -> PeriodIn:
    return PeriodIn(
        dayOfWeek=day,
        startTime=start,
        endTime=end,
        subjectId=subject.id,
        classroomId=room.id,
        teacherId=teacher.user_id,
    )


def main() -> None:
    setup_logging(get_settings())
    ensure_runtime_schema_compatibility()

    with SessionLocal() as session:
        admin = _get_or_create(session, User, {"email": ADMIN_EMAIL}, name="Demo Admin", role=UserRole.admin)
        term = _get_or_create(
            session,
            Term,
            {"name": TERM_NAME},
            start_date=date(2026, 9, 1),
            end_date=date(2027, 1, 31),
        )
        groups = {name: _get_or_create(session, ClassGroup, {"name": name}) for name in ("Demo Grade 10", "Demo Grade 11")}
        subjects = {key: _get_or_create(session, Subject, {"code": code}, name=name) for key, (name, code) in SUBJECTS.items()}
        rooms = {key: _get_or_create(session, Classroom, {"name": name}, building="Main") for key, name in ROOMS.items()}
        teachers = {}
        for key, (name, email, specialization) in TEACHERS.items():
            user = _get_or_create(session, User, {"email": email}, name=name, role=UserRole.teacher)
            teachers[key] = _get_or_create(session, TeacherProfile, {"user_id": user.id}, specialization=specialization)
        session.commit()

        plans = {
            "Demo Grade 10": [
                _period(1, "08:00", "09:00", subject=subjects["math"], room=rooms["room_101"], teacher=teachers["jane"]),
                _period(1, "09:00", "10:00", subject=subjects["science"], room=rooms["room_101"], teacher=teachers["john"]),
            ],
            "Demo Grade 11": [
                _period(1, "08:00", "09:00", subject=subjects["science"], room=rooms["room_102"], teacher=teachers["john"]),
                _period(1, "09:00", "10:00", subject=subjects["math"], room=rooms["room_102"], teacher=teachers["jane"]),
            ],
        }
        assembler = TimetableAssembler(session, actor=admin)
        for group_name, periods in plans.items():
            try:
                timetable = assembler.assemble(
                    term_id=term.id,
                    class_group_id=groups[group_name].id,
                    class_id=None,
                    periods=periods,
                )
            except UniquenessError:
                logger.info("Timetable for %s already seeded", group_name)
                continue
            logger.info("Seeded %s with %s periods (timetable %s)", group_name, len(periods), timetable.id)

        print(f"Admin bearer token: {create_access_token(admin.id)}")


if __name__ == "__main__":
    main()
