"""create leads

Revision ID: 20261005_0002
Revises: 20261005_0001
Create Date: 2026-10-05 11:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261005_0002"
down_revision: Union[str, None] = "20261005_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "leads",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("agency_id", sa.String(length=36), nullable=False),
        sa.Column("lead_number", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("alternate_phone", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=24), server_default=sa.text("'new'"), nullable=False),
        sa.Column("source", sa.String(length=24), server_default=sa.text("'other'"), nullable=False),
        sa.Column("priority", sa.String(length=24), nullable=True),
        sa.Column("travel_details", sa.JSON(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("duplicate_key", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("ai_score", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("ai_score_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("import_id", sa.String(length=64), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("updated_by", sa.String(length=36), nullable=True),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column(
            "is_deleted",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(length=36), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["agency_id"],
            ["agencies.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agency_id", "lead_number", name="uq_leads_agency_lead_number"),
        sa.UniqueConstraint("agency_id", "duplicate_key", name="uq_leads_agency_duplicate_key"),
    )
    op.create_index("ix_leads_agency_id", "leads", ["agency_id"], unique=False)
    op.create_index("ix_leads_agency_id_status", "leads", ["agency_id", "status"], unique=False)
    op.create_index("ix_leads_import_id", "leads", ["import_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_leads_import_id", table_name="leads")
    op.drop_index("ix_leads_agency_id_status", table_name="leads")
    op.drop_index("ix_leads_agency_id", table_name="leads")
    op.drop_table("leads")
