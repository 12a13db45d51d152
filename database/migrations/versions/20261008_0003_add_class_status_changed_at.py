"""add status_changed_at to classes

Revision ID: 20261008_0003
Revises: 20261001_0002
Create Date: 2026-10-08 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "20261008_0003"
down_revision = "20261001_0002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "classes",
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.execute("UPDATE classes SET status_changed_at = updated_at WHERE status_changed_at IS NULL")


def downgrade() -> None:
    op.drop_column("classes", "status_changed_at")
