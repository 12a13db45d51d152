"""create classes, groups, schedule items and group students

Revision ID: 20261001_0002
Revises: 20261001_0001
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261001_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None


class_status_enum = sa.Enum(
    "PENDING_TEACHER_APPROVAL",
    "NOT_STARTED",
    "ACTIVE",
    "PAUSED",
    "FINISHED",
    "CANCELED",
    name="class_status",
)
day_of_week_enum = sa.Enum("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN", name="day_of_week")


def upgrade() -> None:
    op.create_table(
        "classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("status", class_status_enum, nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=False), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_classes_center_id", "classes", ["center_id"])
    op.create_index("ix_classes_teacher_id", "classes", ["teacher_id"])
    op.create_index("ix_classes_status", "classes", ["status"])

    op.create_table(
        "groups",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_groups_class_id", "groups", ["class_id"])
    op.create_index("ix_groups_center_id", "groups", ["center_id"])

    op.create_table(
        "schedule_items",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("group_id", sa.String(length=36), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("day", day_of_week_enum, nullable=False),
        sa.Column("start_minute", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_schedule_items_group_id", "schedule_items", ["group_id"])
    op.create_index("ix_schedule_items_class_id", "schedule_items", ["class_id"])
    op.create_index("ix_schedule_items_day_start", "schedule_items", ["day", "start_minute"])

    op.create_table(
        "group_students",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("group_id", sa.String(length=36), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_group_students_group_id", "group_students", ["group_id"])
    op.create_index("ix_group_students_class_id", "group_students", ["class_id"])
    op.create_index("ix_group_students_student_id", "group_students", ["student_id"])


def downgrade() -> None:
    op.drop_index("ix_group_students_student_id", table_name="group_students")
    op.drop_index("ix_group_students_class_id", table_name="group_students")
    op.drop_index("ix_group_students_group_id", table_name="group_students")
    op.drop_table("group_students")
    op.drop_index("ix_schedule_items_day_start", table_name="schedule_items")
    op.drop_index("ix_schedule_items_class_id", table_name="schedule_items")
    op.drop_index("ix_schedule_items_group_id", table_name="schedule_items")
    op.drop_table("schedule_items")
    op.drop_index("ix_groups_center_id", table_name="groups")
    op.drop_index("ix_groups_class_id", table_name="groups")
    op.drop_table("groups")
    op.drop_index("ix_classes_status", table_name="classes")
    op.drop_index("ix_classes_teacher_id", table_name="classes")
    op.drop_index("ix_classes_center_id", table_name="classes")
    op.drop_table("classes")
    day_of_week_enum.drop(op.get_bind(), checkfirst=True)
    class_status_enum.drop(op.get_bind(), checkfirst=True)
