import uuid
from datetime import datetime, time

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.class_group import ClassGroup, SchoolClass
from app.models.classroom import Classroom
from app.models.subject import Subject
from app.models.teacher_profile import TeacherProfile
from app.models.term import Term


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        UniqueConstraint("term_id", "class_group_id", "class_id", name="uq_timetables_term_group_class"),
        CheckConstraint(
            "class_group_id IS NOT NULL OR class_id IS NOT NULL",
            name="ck_timetables_scope_present",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    term_id: Mapped[str] = mapped_column(String(36), ForeignKey("terms.id", ondelete="CASCADE"), index=True, nullable=False)
    class_group_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("class_groups.id", ondelete="CASCADE"), index=True, nullable=True
    )
    class_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="CASCADE"), index=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    term: Mapped[Term] = relationship()
    class_group: Mapped[ClassGroup | None] = relationship()
    school_class: Mapped[SchoolClass | None] = relationship()
    periods: Mapped[list["Period"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
        order_by="Period.position",
    )


class Period(Base):
    __tablename__ = "periods"
    __table_args__ = (
        # Last line of defence: two writers that both passed the conflict check cannot both commit.
        # Their implicit indexes also serve the per-day teacher and classroom lookups.
        UniqueConstraint("teacher_profile_id", "day_of_week", "start_time", name="uq_periods_teacher_slot"),
        UniqueConstraint("classroom_id", "day_of_week", "start_time", name="uq_periods_classroom_slot"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_periods_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_periods_window"),
        CheckConstraint(
            "duration_in_minutes > 0 AND duration_in_minutes <= 240",
            name="ck_periods_duration",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("timetables.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # Insertion order within the timetable; carries no scheduling meaning.
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_in_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), ForeignKey("subjects.id"), nullable=False)
    classroom_id: Mapped[str] = mapped_column(String(36), ForeignKey("classrooms.id"), nullable=False)
    teacher_profile_id: Mapped[str] = mapped_column(String(36), ForeignKey("teacher_profiles.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    timetable: Mapped[Timetable] = relationship(back_populates="periods")
    subject: Mapped[Subject] = relationship()
    classroom: Mapped[Classroom] = relationship()
    teacher: Mapped[TeacherProfile] = relationship()
