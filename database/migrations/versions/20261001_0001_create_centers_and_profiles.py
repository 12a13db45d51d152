"""create centers and user profiles

Revision ID: 20261001_0001
Revises: None
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


profile_type_enum = sa.Enum("teacher", "student", "staff", name="profile_type")


def upgrade() -> None:
    op.create_table(
        "centers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("center_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("profile_type", profile_type_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_profiles_center_id", "user_profiles", ["center_id"])


def downgrade() -> None:
    op.drop_index("ix_user_profiles_center_id", table_name="user_profiles")
    op.drop_table("user_profiles")
    op.drop_table("centers")
    profile_type_enum.drop(op.get_bind(), checkfirst=True)
