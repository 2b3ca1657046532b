"""create singleton settings row

Revision ID: 0003
Revises: 0002
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("support_email", sa.String(), nullable=True),
        sa.CheckConstraint("id = 1", name="ck_settings_singleton"),
    )


def downgrade():
    op.drop_table("settings")
