from __future__ import annotations

from bisect import bisect_left, insort
from collections import defaultdict
from dataclasses import dataclass
from datetime import time
from enum import Enum
import logging

from app.core.exceptions import ConflictError
from app.models.classroom import Classroom
from app.models.subject import Subject
from app.models.teacher_profile import TeacherProfile
from app.models.timetable import Period
from app.schemas.timetable import PeriodIn
from app.services.period_repository import PeriodRepository
from app.services.time_interval import TimeInterval, format_time, overlaps, resolve_duration

logger = logging.getLogger(__name__)


class ConflictKind(str, Enum):
    TEACHER_CONFLICT = "TEACHER_CONFLICT"
    CLASSROOM_CONFLICT = "CLASSROOM_CONFLICT"


@dataclass(frozen=True)
class PeriodCandidate:
    """A period that passed input validation and has its teacher profile resolved."""

    interval: TimeInterval
    duration_in_minutes: int
    subject: Subject
    classroom: Classroom
    teacher: TeacherProfile
    batch_index: int | None = None

    def describe(self) -> dict:
        payload = {
            "dayOfWeek": self.interval.day_of_week,
            "startTime": format_time(self.interval.start),
            "endTime": format_time(self.interval.end),
            "durationInMinutes": self.duration_in_minutes,
            "subjectId": self.subject.id,
            "classroomId": self.classroom.id,
            "teacherId": self.teacher.user_id,
            "teacherProfileId": self.teacher.id,
        }
        if self.batch_index is not None:
            payload["batchIndex"] = self.batch_index
        return payload


@dataclass(frozen=True)
class ConflictingPeriod:
    """The record a candidate collides with: either a stored period or an earlier period of the same batch."""

    interval: TimeInterval
    subject_name: str
    classroom_name: str
    teacher_name: str
    period_id: str | None = None
    timetable_id: str | None = None
    batch_index: int | None = None

    @classmethod
    def from_period(cls, period: Period) -> "ConflictingPeriod":
        return cls(
            interval=interval_of(period),
            subject_name=period.subject.name,
            classroom_name=period.classroom.name,
            teacher_name=period.teacher.name,
            period_id=period.id,
            timetable_id=period.timetable_id,
        )

    @classmethod
    def from_candidate(cls, candidate: PeriodCandidate) -> "ConflictingPeriod":
        return cls(
            interval=candidate.interval,
            subject_name=candidate.subject.name,
            classroom_name=candidate.classroom.name,
            teacher_name=candidate.teacher.name,
            batch_index=candidate.batch_index,
        )

    @property
    def day_of_week(self) -> int:
        return self.interval.day_of_week

    @property
    def start_time(self) -> time:
        return self.interval.start

    @property
    def end_time(self) -> time:
        return self.interval.end

    def to_dict(self) -> dict:
        return {
            "periodId": self.period_id,
            "timetableId": self.timetable_id,
            "batchIndex": self.batch_index,
            "dayOfWeek": self.interval.day_of_week,
            "startTime": format_time(self.interval.start),
            "endTime": format_time(self.interval.end),
            "subjectName": self.subject_name,
            "classroomName": self.classroom_name,
            "teacherName": self.teacher_name,
        }


@dataclass(frozen=True)
class ConflictResult:
    kind: ConflictKind | None = None
    existing: ConflictingPeriod | None = None
    message: str | None = None

    @property
    def has_conflict(self) -> bool:
        return self.kind is not None


NO_CONFLICT = ConflictResult()


def interval_of(period: Period) -> TimeInterval:
    return TimeInterval(period.day_of_week, period.start_time, period.end_time)


class PendingPeriodIndex:
    """Periods accepted earlier in the same batch, as sorted interval lists per (teacher, day) and (classroom, day).

    Every entry was conflict-checked on both keys before insertion, so the entries under one key are
    pairwise disjoint and sorting by start also sorts by end.
    """

    def __init__(self) -> None:
        self._slots: dict[tuple[str, str, int], list[tuple[time, time, int, PeriodCandidate]]] = defaultdict(list)
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def add(self, candidate: PeriodCandidate) -> None:
        entry = (candidate.interval.start, candidate.interval.end, self._count, candidate)
        day = candidate.interval.day_of_week
        insort(self._slots[("teacher", candidate.teacher.id, day)], entry)
        insort(self._slots[("classroom", candidate.classroom.id, day)], entry)
        self._count += 1

    def find_teacher_overlap(self, candidate: PeriodCandidate) -> PeriodCandidate | None:
        return self._find(("teacher", candidate.teacher.id, candidate.interval.day_of_week), candidate.interval)

    def find_classroom_overlap(self, candidate: PeriodCandidate) -> PeriodCandidate | None:
        return self._find(("classroom", candidate.classroom.id, candidate.interval.day_of_week), candidate.interval)

    def _find(self, key: tuple[str, str, int], interval: TimeInterval) -> PeriodCandidate | None:
        entries = self._slots.get(key)
        if not entries:
            return None
        # Entries before this index start before the window ends.
        position = bisect_left(entries, (interval.end,))
        earliest = None
        while position > 0:
            position -= 1
            _, end, _, other = entries[position]
            if end <= interval.start:
                break
            earliest = other
        return earliest


def validate_window(period: PeriodIn) -> tuple[TimeInterval, int]:
    interval = TimeInterval(period.day_of_week, period.start_time, period.end_time)
    return interval, resolve_duration(interval, period.duration_in_minutes)


def resolve_candidate(
    repository: PeriodRepository,
    period: PeriodIn,
    window: tuple[TimeInterval, int],
    *,
    batch_index: int | None = None,
) -> PeriodCandidate:
    interval, duration = window
    teacher = repository.resolve_teacher_profile(period.teacher_id)
    subject = repository.require_subject(period.subject_id)
    classroom = repository.require_classroom(period.classroom_id)
    return PeriodCandidate(
        interval=interval,
        duration_in_minutes=duration,
        subject=subject,
        classroom=classroom,
        teacher=teacher,
        batch_index=batch_index,
    )


def conflict_error(candidate: PeriodCandidate, result: ConflictResult) -> ConflictError:
    return ConflictError(
        kind=result.kind.value,
        message=result.message,
        candidate=candidate.describe(),
        existing=result.existing.to_dict(),
    )


class ConflictChecker:
    def __init__(self, repository: PeriodRepository) -> None:
        self.repository = repository

    def check(
        self,
        candidate: PeriodCandidate,
        *,
        exclude_period_id: str | None = None,
        pending: PendingPeriodIndex | None = None,
    ) -> ConflictResult:
        stored = [
            period
            for period in self.repository.find_conflicting(
                teacher_profile_id=candidate.teacher.id,
                classroom_id=candidate.classroom.id,
                interval=candidate.interval,
                exclude_period_id=exclude_period_id,
            )
            if overlaps(candidate.interval, interval_of(period))
        ]

        # A teacher cannot be split across rooms, so teacher collisions are reported first.
        teacher_hit = next((p for p in stored if p.teacher_profile_id == candidate.teacher.id), None)
        if teacher_hit is not None:
            return self._teacher_conflict(candidate, ConflictingPeriod.from_period(teacher_hit))
        if pending is not None:
            sibling = pending.find_teacher_overlap(candidate)
            if sibling is not None:
                return self._teacher_conflict(candidate, ConflictingPeriod.from_candidate(sibling))

        classroom_hit = next((p for p in stored if p.classroom_id == candidate.classroom.id), None)
        if classroom_hit is not None:
            return self._classroom_conflict(candidate, ConflictingPeriod.from_period(classroom_hit))
        if pending is not None:
            sibling = pending.find_classroom_overlap(candidate)
            if sibling is not None:
                return self._classroom_conflict(candidate, ConflictingPeriod.from_candidate(sibling))

        return NO_CONFLICT

    def _teacher_conflict(self, candidate: PeriodCandidate, existing: ConflictingPeriod) -> ConflictResult:
        message = (
            f"Teacher {existing.teacher_name} is already assigned to {existing.subject_name} "
            f"in {existing.classroom_name} on {existing.interval.label()}"
        )
        return self._result(ConflictKind.TEACHER_CONFLICT, candidate, existing, message)

    def _classroom_conflict(self, candidate: PeriodCandidate, existing: ConflictingPeriod) -> ConflictResult:
        message = (
            f"Classroom {existing.classroom_name} is already booked for {existing.subject_name} "
            f"on {existing.interval.label()}"
        )
        return self._result(ConflictKind.CLASSROOM_CONFLICT, candidate, existing, message)

    @staticmethod
    def _result(
        kind: ConflictKind,
        candidate: PeriodCandidate,
        existing: ConflictingPeriod,
        message: str,
    ) -> ConflictResult:
        logger.debug(
            "CONFLICT DETECTED | kind=%s | candidate=%s | existing_period=%s | batch_index=%s",
            kind.value,
            candidate.interval.label(),
            existing.period_id,
            existing.batch_index,
        )
        return ConflictResult(kind=kind, existing=existing, message=message)
