import pytest
from sqlalchemy import func, select

from app.core.config import get_settings
from app.core.exceptions import (
    ConflictError,
    ResourceNotFoundError,
    TeacherProfileNotFound,
    UniquenessError,
    ValidationError,
)
from app.models.activity_log import ActivityLog
from app.models.timetable import Period, Timetable
from app.services.timetable_assembler import AssemblyState, TimetableAssembler


def count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def assemble(db, school, periods, *, class_group_id=None, class_id=None):
    assembler = TimetableAssembler(db)
    timetable = assembler.assemble(
        term_id=school.term_id,
        class_group_id=class_group_id or school.grade_10_id,
        class_id=class_id,
        periods=periods,
    )
    return assembler, timetable


def test_assemble_persists_all_periods_in_order(db_session, school, make_period):
    assembler, timetable = assemble(
        db_session,
        school,
        [
            make_period(1, "08:00", "09:00"),
            make_period(1, "09:00", "10:00", subjectId=school.science_id, teacherId=school.john_id),
            make_period(2, "08:00", "08:45", durationInMinutes=45),
        ],
    )

    assert assembler.state is AssemblyState.committed
    assert [p.position for p in timetable.periods] == [0, 1, 2]
    assert [p.duration_in_minutes for p in timetable.periods] == [60, 60, 45]
    assert timetable.periods[0].teacher.id == school.jane_profile_id
    assert count(db_session, Period) == 3


def test_assemble_records_audit_row(db_session, school, make_period):
    _, timetable = assemble(db_session, school, [make_period()])

    log = db_session.execute(select(ActivityLog).where(ActivityLog.entity_id == timetable.id)).scalar_one()
    assert log.action == "timetable.create"
    assert log.details["period_count"] == 1


def test_conflict_in_batch_rolls_back_everything(db_session, school, make_period):
    # Three valid periods followed by one that double-books Room 101 on Monday 08:00.
    periods = [
        make_period(1, "08:00", "09:00"),
        make_period(1, "09:00", "10:00"),
        make_period(2, "08:00", "09:00"),
        make_period(1, "08:30", "09:00", teacherId=school.john_id, subjectId=school.science_id),
    ]
    assembler = TimetableAssembler(db_session)

    with pytest.raises(ConflictError) as exc_info:
        assembler.assemble(
            term_id=school.term_id,
            class_group_id=school.grade_10_id,
            class_id=None,
            periods=periods,
        )

    assert assembler.state is AssemblyState.rejected
    assert exc_info.value.kind == "CLASSROOM_CONFLICT"
    assert exc_info.value.candidate["batchIndex"] == 3
    assert exc_info.value.existing["batchIndex"] == 0
    assert count(db_session, Timetable) == 0
    assert count(db_session, Period) == 0
    assert count(db_session, ActivityLog) == 0


def test_intra_batch_teacher_conflict(db_session, school, make_period):
    periods = [
        make_period(3, "10:00", "11:00"),
        make_period(3, "10:30", "11:30", classroomId=school.lab_id, subjectId=school.english_id),
    ]

    with pytest.raises(ConflictError) as exc_info:
        assemble(db_session, school, periods)

    assert exc_info.value.kind == "TEACHER_CONFLICT"
    assert "Teacher Jane is already assigned to Math in Room 101 on Wednesday 10:00-11:00" == exc_info.value.message


def test_conflict_with_another_timetable(db_session, school, make_period):
    assemble(db_session, school, [make_period(1, "08:00", "09:00")])

    with pytest.raises(ConflictError) as exc_info:
        assemble(
            db_session,
            school,
            [make_period(1, "08:00", "09:00", classroomId=school.lab_id)],
            class_group_id=school.grade_11_id,
        )

    assert exc_info.value.kind == "TEACHER_CONFLICT"
    assert count(db_session, Timetable) == 1


def test_parallel_periods_in_one_timetable_are_allowed(db_session, school, make_period):
    _, timetable = assemble(
        db_session,
        school,
        [
            make_period(1, "08:00", "09:00"),
            make_period(1, "08:00", "09:00", teacherId=school.john_id, classroomId=school.lab_id),
        ],
    )

    assert len(timetable.periods) == 2


def test_duplicate_scope_is_rejected(db_session, school, make_period):
    assemble(db_session, school, [make_period()], class_id=school.class_10a_id)

    with pytest.raises(UniquenessError):
        assemble(db_session, school, [], class_id=school.class_10a_id)

    assert count(db_session, Timetable) == 1


def test_duplicate_scope_with_missing_class_is_rejected(db_session, school):
    assemble(db_session, school, [])

    with pytest.raises(UniquenessError):
        assemble(db_session, school, [])


def test_same_group_with_and_without_class_are_distinct(db_session, school):
    assemble(db_session, school, [])
    assemble(db_session, school, [], class_id=school.class_10a_id)

    assert count(db_session, Timetable) == 2


def test_missing_scope_is_rejected(db_session, school):
    assembler = TimetableAssembler(db_session)

    with pytest.raises(ValidationError):
        assembler.assemble(term_id=school.term_id, class_group_id=None, class_id=None, periods=[])

    assert assembler.state is AssemblyState.rejected


def test_unknown_term_is_rejected(db_session, school):
    with pytest.raises(ResourceNotFoundError):
        TimetableAssembler(db_session).assemble(
            term_id="missing-term",
            class_group_id=school.grade_10_id,
            class_id=None,
            periods=[],
        )


def test_teacher_without_profile_is_rejected(db_session, school, make_period):
    with pytest.raises(TeacherProfileNotFound) as exc_info:
        assemble(db_session, school, [make_period(), make_period(2, teacherId=school.ghost_id)])

    assert exc_info.value.teacher_id == school.ghost_id
    assert count(db_session, Period) == 0


def test_mismatched_duration_is_rejected(db_session, school, make_period):
    with pytest.raises(ValidationError) as exc_info:
        assemble(db_session, school, [make_period(1, "08:00", "09:00", durationInMinutes=45)])

    assert exc_info.value.details == {"field": "durationInMinutes"}
    assert count(db_session, Timetable) == 0


def test_replace_swaps_the_period_set(db_session, school, make_period):
    _, timetable = assemble(db_session, school, [make_period(1, "08:00", "09:00"), make_period(2, "08:00", "09:00")])

    replaced = TimetableAssembler(db_session).replace(
        timetable.id,
        [make_period(1, "08:00", "09:00", subjectId=school.english_id)],
    )

    assert [p.subject_id for p in replaced.periods] == [school.english_id]
    assert count(db_session, Period) == 1


def test_replace_failure_keeps_previous_periods(db_session, school, make_period):
    _, timetable = assemble(db_session, school, [make_period(1, "08:00", "09:00"), make_period(2, "08:00", "09:00")])
    previous_ids = {p.id for p in timetable.periods}
    assembler = TimetableAssembler(db_session)

    with pytest.raises(ConflictError):
        assembler.replace(
            timetable.id,
            [
                make_period(4, "08:00", "09:00"),
                make_period(4, "08:30", "09:30", teacherId=school.john_id),
            ],
        )

    db_session.expire_all()
    assert assembler.state is AssemblyState.rejected
    assert {p.id for p in db_session.get(Timetable, timetable.id).periods} == previous_ids


def test_replace_of_unknown_timetable(db_session, school):
    with pytest.raises(ResourceNotFoundError):
        TimetableAssembler(db_session).replace("missing", [])


def test_delete_timetable_removes_periods(db_session, school, make_period):
    _, timetable = assemble(db_session, school, [make_period(), make_period(2)])

    TimetableAssembler(db_session).delete_timetable(timetable.id)

    assert count(db_session, Timetable) == 0
    assert count(db_session, Period) == 0


def test_weekly_schedule_example(db_session, school, make_period):
    """Two class groups share teachers and rooms over a week without collisions."""
    _, grade_10 = assemble(
        db_session,
        school,
        [
            make_period(1, "08:00", "09:00"),
            make_period(1, "09:00", "10:00", subjectId=school.science_id, teacherId=school.john_id),
            make_period(3, "08:00", "09:00", classroomId=school.lab_id),
        ],
    )
    _, grade_11 = assemble(
        db_session,
        school,
        [
            make_period(1, "08:00", "09:00", subjectId=school.science_id, teacherId=school.john_id, classroomId=school.room_102_id),
            make_period(1, "09:00", "10:00", classroomId=school.room_102_id),
        ],
        class_group_id=school.grade_11_id,
    )

    assert len(grade_10.periods) == 3
    assert len(grade_11.periods) == 2

    with pytest.raises(ConflictError) as exc_info:
        TimetableAssembler(db_session).replace(
            grade_11.id,
            [make_period(3, "08:30", "09:30", subjectId=school.english_id, teacherId=school.john_id, classroomId=school.lab_id)],
        )

    assert exc_info.value.kind == "CLASSROOM_CONFLICT"
    db_session.expire_all()
    assert len(db_session.get(Timetable, grade_11.id).periods) == 2


def test_batch_larger_than_configured_limit_is_rejected(db_session, school, make_period, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_periods_per_timetable", 1)

    with pytest.raises(ValidationError) as exc_info:
        assemble(db_session, school, [make_period(1), make_period(2)])

    assert exc_info.value.details == {"field": "periods"}
    assert count(db_session, Timetable) == 0


def test_inverted_window_is_reported_before_duplicate_scope(db_session, school, make_period):
    assemble(db_session, school, [])

    with pytest.raises(ValidationError) as exc_info:
        assemble(db_session, school, [make_period(1, "10:00", "09:00")])

    assert exc_info.value.details == {"field": "endTime"}
    assert count(db_session, Timetable) == 1


def test_inverted_window_is_reported_before_unknown_term(db_session, school, make_period):
    with pytest.raises(ValidationError):
        TimetableAssembler(db_session).assemble(
            term_id="missing",
            class_group_id=school.grade_10_id,
            class_id=None,
            periods=[make_period(1, "10:00", "09:00")],
        )


def test_blank_class_group_is_stored_as_null(db_session, school):
    assembler = TimetableAssembler(db_session)
    timetable = assembler.assemble(term_id=school.term_id, class_group_id="", class_id=school.class_10a_id, periods=[])

    db_session.expire_all()
    stored = db_session.get(Timetable, timetable.id)
    assert stored.class_group_id is None
    assert stored.class_id == school.class_10a_id


def test_blank_ids_alone_do_not_satisfy_scope(db_session, school):
    with pytest.raises(ValidationError):
        TimetableAssembler(db_session).assemble(term_id=school.term_id, class_group_id=" ", class_id="", periods=[])

    assert count(db_session, Timetable) == 0


def test_interrupt_mid_batch_rolls_back_everything(db_session, school, make_period, monkeypatch):
    assembler = TimetableAssembler(db_session)
    original_check = assembler.checker.check
    calls = []

    def interrupt_on_third(candidate, **kwargs):
        calls.append(candidate.batch_index)
        if len(calls) == 3:
            raise KeyboardInterrupt
        return original_check(candidate, **kwargs)

    monkeypatch.setattr(assembler.checker, "check", interrupt_on_third)

    with pytest.raises(KeyboardInterrupt):
        assembler.assemble(
            term_id=school.term_id,
            class_group_id=school.grade_10_id,
            class_id=None,
            periods=[make_period(1), make_period(2), make_period(3), make_period(4)],
        )

    assert assembler.state is AssemblyState.rejected
    assert count(db_session, Timetable) == 0
    assert count(db_session, Period) == 0
    assert count(db_session, ActivityLog) == 0


def test_interrupt_during_replace_keeps_previous_periods(db_session, school, make_period, monkeypatch):
    _, timetable = assemble(db_session, school, [make_period(1), make_period(2)])
    previous_ids = {p.id for p in timetable.periods}
    assembler = TimetableAssembler(db_session)

    def interrupt(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(assembler.repository, "create_many", interrupt)

    with pytest.raises(KeyboardInterrupt):
        assembler.replace(timetable.id, [make_period(3)])

    db_session.expire_all()
    assert assembler.state is AssemblyState.rejected
    assert {p.id for p in db_session.get(Timetable, timetable.id).periods} == previous_ids
