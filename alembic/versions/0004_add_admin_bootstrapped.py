"""flag admin credentials seeded from ADMIN_PASSWORD

Revision ID: 0004
Revises: 0003
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0004"
down_revision = "0003"
branch_labels = None
depends_on = None


def upgrade():
    op.add_column(
        "admin_users",
        sa.Column("bootstrapped", sa.Boolean(), nullable=False, server_default=sa.false()),
    )


def downgrade():
    op.drop_column("admin_users", "bootstrapped")
