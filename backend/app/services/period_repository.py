from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.exceptions import ResourceNotFoundError, TeacherProfileNotFound
from app.models.class_group import ClassGroup, SchoolClass
from app.models.classroom import Classroom
from app.models.subject import Subject
from app.models.teacher_profile import TeacherProfile
from app.models.term import Term
from app.models.timetable import Period, Timetable
from app.services.time_interval import TimeInterval

if TYPE_CHECKING:
    from app.services.conflict_service import PeriodCandidate

ModelT = TypeVar("ModelT")


def _period_load_options():
    return (
        joinedload(Period.subject),
        joinedload(Period.classroom),
        joinedload(Period.teacher),
    )


class PeriodRepository:
    """Every read and write of period state goes through here; nothing is cached between calls."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # Periods

    def find_conflicting(
        self,
        *,
        teacher_profile_id: str,
        classroom_id: str,
        interval: TimeInterval,
        exclude_period_id: str | None = None,
    ) -> list[Period]:
        stmt = (
            select(Period)
            .options(*_period_load_options())
            .where(
                or_(
                    Period.teacher_profile_id == teacher_profile_id,
                    Period.classroom_id == classroom_id,
                ),
                Period.day_of_week == interval.day_of_week,
                Period.start_time < interval.end,
                Period.end_time > interval.start,
            )
            .order_by(Period.start_time, Period.id)
        )
        if exclude_period_id is not None:
            stmt = stmt.where(Period.id != exclude_period_id)
        return list(self.db.execute(stmt).unique().scalars())

    def create_many(self, timetable: Timetable, candidates: Sequence[PeriodCandidate]) -> list[Period]:
        next_position = self.db.execute(
            select(func.coalesce(func.max(Period.position), -1) + 1).where(Period.timetable_id == timetable.id)
        ).scalar_one()
        periods = [
            Period(
                timetable_id=timetable.id,
                position=next_position + offset,
                day_of_week=candidate.interval.day_of_week,
                start_time=candidate.interval.start,
                end_time=candidate.interval.end,
                duration_in_minutes=candidate.duration_in_minutes,
                subject_id=candidate.subject.id,
                classroom_id=candidate.classroom.id,
                teacher_profile_id=candidate.teacher.id,
            )
            for offset, candidate in enumerate(candidates)
        ]
        self.db.add_all(periods)
        self.db.flush()
        self.db.expire(timetable, ["periods"])
        return periods

    def update(self, period: Period, candidate: PeriodCandidate) -> Period:
        period.day_of_week = candidate.interval.day_of_week
        period.start_time = candidate.interval.start
        period.end_time = candidate.interval.end
        period.duration_in_minutes = candidate.duration_in_minutes
        period.subject_id = candidate.subject.id
        period.classroom_id = candidate.classroom.id
        period.teacher_profile_id = candidate.teacher.id
        self.db.flush()
        self.db.expire(period, ["subject", "classroom", "teacher"])
        return period

    def delete_all_for_timetable(self, timetable_id: str) -> int:
        # Executed immediately so the rows are gone before replacement periods are validated or inserted.
        result = self.db.execute(
            delete(Period)
            .where(Period.timetable_id == timetable_id)
            .execution_options(synchronize_session="fetch")
        )
        timetable = self.db.get(Timetable, timetable_id)
        if timetable is not None:
            self.db.expire(timetable, ["periods"])
        return result.rowcount or 0

    def get_period(self, period_id: str, *, timetable_id: str | None = None) -> Period:
        period = self.db.execute(
            select(Period).options(*_period_load_options()).where(Period.id == period_id)
        ).unique().scalar_one_or_none()
        if period is None or (timetable_id is not None and period.timetable_id != timetable_id):
            raise ResourceNotFoundError("Period", period_id)
        return period

    def delete_period(self, period: Period) -> None:
        self.db.delete(period)
        self.db.flush()

    def list_periods_for_teacher(self, teacher_profile_id: str) -> list[Period]:
        stmt = (
            select(Period)
            .options(*_period_load_options())
            .where(Period.teacher_profile_id == teacher_profile_id)
            .order_by(Period.day_of_week, Period.start_time)
        )
        return list(self.db.execute(stmt).unique().scalars())

    # Teacher identity

    def resolve_teacher_profile(self, user_id: str) -> TeacherProfile:
        profile = self.db.execute(
            select(TeacherProfile).where(TeacherProfile.user_id == user_id)
        ).unique().scalar_one_or_none()
        if profile is None:
            raise TeacherProfileNotFound(user_id)
        return profile

    # Timetables

    def get_timetable(self, timetable_id: str) -> Timetable:
        timetable = self.db.get(Timetable, timetable_id)
        if timetable is None:
            raise ResourceNotFoundError("Timetable", timetable_id)
        return timetable

    def find_timetable(self, term_id: str, class_group_id: str | None, class_id: str | None) -> Timetable | None:
        # NULL-aware: a plain unique constraint treats (term, NULL, class) rows as distinct.
        group_clause = (
            Timetable.class_group_id.is_(None) if class_group_id is None else Timetable.class_group_id == class_group_id
        )
        class_clause = Timetable.class_id.is_(None) if class_id is None else Timetable.class_id == class_id
        stmt = select(Timetable).where(Timetable.term_id == term_id, group_clause, class_clause)
        return self.db.execute(stmt).scalars().first()

    def list_timetables(self, *, term_id: str | None = None) -> list[Timetable]:
        stmt = (
            select(Timetable)
            .options(
                selectinload(Timetable.periods).joinedload(Period.subject),
                selectinload(Timetable.periods).joinedload(Period.classroom),
                selectinload(Timetable.periods).joinedload(Period.teacher),
            )
            .order_by(Timetable.created_at, Timetable.id)
        )
        if term_id is not None:
            stmt = stmt.where(Timetable.term_id == term_id)
        return list(self.db.execute(stmt).scalars())

    def create_timetable(self, *, term_id: str, class_group_id: str | None, class_id: str | None) -> Timetable:
        timetable = Timetable(term_id=term_id, class_group_id=class_group_id, class_id=class_id)
        self.db.add(timetable)
        self.db.flush()
        return timetable

    def delete_timetable(self, timetable: Timetable) -> None:
        self.delete_all_for_timetable(timetable.id)
        self.db.delete(timetable)
        self.db.flush()

    # Reference checks

    def _require(self, model: type[ModelT], resource_type: str, resource_id: str) -> ModelT:
        record = self.db.get(model, resource_id)
        if record is None:
            raise ResourceNotFoundError(resource_type, resource_id)
        return record

    def require_term(self, term_id: str) -> Term:
        return self._require(Term, "Term", term_id)

    def require_class_group(self, class_group_id: str) -> ClassGroup:
        return self._require(ClassGroup, "ClassGroup", class_group_id)

    def require_class(self, class_id: str) -> SchoolClass:
        return self._require(SchoolClass, "Class", class_id)

    def require_subject(self, subject_id: str) -> Subject:
        return self._require(Subject, "Subject", subject_id)

    def require_classroom(self, classroom_id: str) -> Classroom:
        return self._require(Classroom, "Classroom", classroom_id)
