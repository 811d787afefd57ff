"""Add site_visits for the site-wide visit counter

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "site_visits",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("visitor_ip", sa.String(64)),
        sa.Column("visit_date", sa.Date(), server_default=sa.func.current_date()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_site_visits_visit_date", "site_visits", ["visit_date"])


def downgrade() -> None:
    op.drop_index("ix_site_visits_visit_date", table_name="site_visits")
    op.drop_table("site_visits")
