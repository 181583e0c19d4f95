from datetime import time

import pytest

from app.services.conflict_service import (
    ConflictChecker,
    ConflictKind,
    PendingPeriodIndex,
    conflict_error,
    resolve_candidate,
    validate_window,
)
from app.services.period_repository import PeriodRepository
from app.services.timetable_assembler import TimetableAssembler


@pytest.fixture
def repository(db_session):
    return PeriodRepository(db_session)


@pytest.fixture
def checker(repository):
    return ConflictChecker(repository)


@pytest.fixture
def stored_timetable(db_session, school, make_period):
    # Grade 10: Jane teaches Math in Room 101 on Monday 08:00-09:00.
    return TimetableAssembler(db_session).assemble(
        term_id=school.term_id,
        class_group_id=school.grade_10_id,
        class_id=None,
        periods=[make_period(1, "08:00", "09:00")],
    )


def to_candidate(repository, period, batch_index=None):
    return resolve_candidate(repository, period, validate_window(period), batch_index=batch_index)


def test_teacher_conflict_across_timetables(stored_timetable, repository, checker, school, make_period):
    candidate = to_candidate(
        repository,
        make_period(1, "08:30", "09:30", subjectId=school.science_id, classroomId=school.room_102_id),
    )

    result = checker.check(candidate)

    assert result.has_conflict
    assert result.kind is ConflictKind.TEACHER_CONFLICT
    assert result.message == "Teacher Jane is already assigned to Math in Room 101 on Monday 08:00-09:00"
    assert result.existing.period_id == stored_timetable.periods[0].id
    assert result.existing.timetable_id == stored_timetable.id


def test_classroom_conflict_with_different_teacher(stored_timetable, repository, checker, school, make_period):
    candidate = to_candidate(
        repository,
        make_period(1, "08:30", "09:30", subjectId=school.science_id, teacherId=school.john_id),
    )

    result = checker.check(candidate)

    assert result.kind is ConflictKind.CLASSROOM_CONFLICT
    assert result.message == "Classroom Room 101 is already booked for Math on Monday 08:00-09:00"


def test_teacher_conflict_reported_before_classroom(stored_timetable, repository, checker, make_period):
    # Same teacher and same room: both dimensions collide.
    candidate = to_candidate(repository, make_period(1, "08:15", "08:45"))

    assert checker.check(candidate).kind is ConflictKind.TEACHER_CONFLICT


def test_teacher_conflict_ignores_subject(stored_timetable, repository, checker, school, make_period):
    candidate = to_candidate(
        repository,
        make_period(1, "08:00", "09:00", subjectId=school.english_id, classroomId=school.lab_id),
    )

    assert checker.check(candidate).kind is ConflictKind.TEACHER_CONFLICT


def test_adjacent_period_is_not_a_conflict(stored_timetable, repository, checker, make_period):
    candidate = to_candidate(repository, make_period(1, "09:00", "10:00"))

    result = checker.check(candidate)

    assert not result.has_conflict
    assert result.kind is None


def test_other_day_is_not_a_conflict(stored_timetable, repository, checker, make_period):
    assert not checker.check(to_candidate(repository, make_period(2, "08:00", "09:00"))).has_conflict


def test_excluded_period_does_not_conflict_with_itself(stored_timetable, repository, checker, make_period):
    candidate = to_candidate(repository, make_period(1, "08:00", "09:00"))
    period_id = stored_timetable.periods[0].id

    assert checker.check(candidate).has_conflict
    assert not checker.check(candidate, exclude_period_id=period_id).has_conflict


def test_earliest_colliding_period_is_reported(db_session, school, repository, checker, make_period):
    TimetableAssembler(db_session).assemble(
        term_id=school.term_id,
        class_group_id=school.grade_10_id,
        class_id=None,
        periods=[
            make_period(1, "09:00", "10:00", classroomId=school.room_102_id),
            make_period(1, "08:00", "09:00"),
        ],
    )
    candidate = to_candidate(repository, make_period(1, "08:30", "09:30", classroomId=school.lab_id))

    result = checker.check(candidate)

    assert result.existing.start_time == time(8, 0)


def test_pending_batch_sibling_conflict(repository, checker, school, make_period):
    pending = PendingPeriodIndex()
    first = to_candidate(repository, make_period(3, "10:00", "11:00"), batch_index=0)
    pending.add(first)
    second = to_candidate(
        repository,
        make_period(3, "10:30", "11:30", teacherId=school.john_id, subjectId=school.science_id),
        batch_index=1,
    )

    result = checker.check(second, pending=pending)

    assert result.kind is ConflictKind.CLASSROOM_CONFLICT
    assert result.existing.period_id is None
    assert result.existing.batch_index == 0


def test_conflict_error_carries_both_sides(stored_timetable, repository, checker, school, make_period):
    candidate = to_candidate(repository, make_period(1, "08:30", "09:30", classroomId=school.lab_id), batch_index=2)
    result = checker.check(candidate)

    error = conflict_error(candidate, result)

    assert error.status_code == 409
    assert error.details["kind"] == "TEACHER_CONFLICT"
    assert error.details["candidate"]["batchIndex"] == 2
    assert error.details["candidate"]["startTime"] == "08:30"
    assert error.details["existing"]["periodId"] == stored_timetable.periods[0].id
    assert error.details["existing"]["classroomName"] == "Room 101"


def test_pending_index_returns_earliest_overlap(repository, school, make_period):
    pending = PendingPeriodIndex()
    for index, (start, end) in enumerate([("11:00", "12:00"), ("08:00", "09:00"), ("09:00", "10:00")]):
        pending.add(to_candidate(repository, make_period(4, start, end, classroomId=school.lab_id), batch_index=index))
    query = to_candidate(repository, make_period(4, "08:30", "11:30", classroomId=school.room_102_id))

    sibling = pending.find_teacher_overlap(query)

    assert len(pending) == 3
    assert sibling.batch_index == 1
    assert pending.find_classroom_overlap(query) is None


def test_pending_index_ignores_touching_windows(repository, make_period):
    pending = PendingPeriodIndex()
    pending.add(to_candidate(repository, make_period(4, "08:00", "09:00"), batch_index=0))
    pending.add(to_candidate(repository, make_period(4, "10:00", "11:00"), batch_index=1))

    query = to_candidate(repository, make_period(4, "09:00", "10:00"))

    assert pending.find_teacher_overlap(query) is None
    assert pending.find_classroom_overlap(query) is None
