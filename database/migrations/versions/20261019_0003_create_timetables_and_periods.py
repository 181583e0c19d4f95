"""create timetables and periods

Revision ID: 20261019_0003
Revises: 20261019_0002
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0003"
down_revision = "20261019_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("term_id", sa.String(length=36), sa.ForeignKey("terms.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "class_group_id",
            sa.String(length=36),
            sa.ForeignKey("class_groups.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("term_id", "class_group_id", "class_id", name="uq_timetables_term_group_class"),
        sa.CheckConstraint("class_group_id IS NOT NULL OR class_id IS NOT NULL", name="ck_timetables_scope_present"),
    )
    op.create_index("ix_timetables_term_id", "timetables", ["term_id"])
    op.create_index("ix_timetables_class_group_id", "timetables", ["class_group_id"])
    op.create_index("ix_timetables_class_id", "timetables", ["class_id"])

    op.create_table(
        "periods",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "timetable_id",
            sa.String(length=36),
            sa.ForeignKey("timetables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_in_minutes", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id"), nullable=False),
        sa.Column("classroom_id", sa.String(length=36), sa.ForeignKey("classrooms.id"), nullable=False),
        sa.Column("teacher_profile_id", sa.String(length=36), sa.ForeignKey("teacher_profiles.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("teacher_profile_id", "day_of_week", "start_time", name="uq_periods_teacher_slot"),
        sa.UniqueConstraint("classroom_id", "day_of_week", "start_time", name="uq_periods_classroom_slot"),
        sa.CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_periods_day_of_week"),
        sa.CheckConstraint("start_time < end_time", name="ck_periods_window"),
        sa.CheckConstraint("duration_in_minutes > 0 AND duration_in_minutes <= 240", name="ck_periods_duration"),
    )
    op.create_index("ix_periods_timetable_id", "periods", ["timetable_id"])


def downgrade() -> None:
    op.drop_index("ix_periods_timetable_id", table_name="periods")
    op.drop_table("periods")
    op.drop_index("ix_timetables_class_id", table_name="timetables")
    op.drop_index("ix_timetables_class_group_id", table_name="timetables")
    op.drop_index("ix_timetables_term_id", table_name="timetables")
    op.drop_table("timetables")
