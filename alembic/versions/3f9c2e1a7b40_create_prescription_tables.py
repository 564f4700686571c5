"""create prescription analysis tables

Revision ID: 3f9c2e1a7b40
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "3f9c2e1a7b40"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================
    # 1. prescriptions
    # =========================================================
    op.create_table(
        "prescriptions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("ocr_text", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_prescriptions_user_id", "prescriptions", ["user_id"])
    op.create_index("ix_prescriptions_created_at", "prescriptions", ["created_at"])

    # =========================================================
    # 2. extracted_data + medicines
    # =========================================================
    op.create_table(
        "extracted_data",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "prescription_id",
            UUID(as_uuid=True),
            sa.ForeignKey("prescriptions.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("doctor", sa.String(255), nullable=True),
        sa.Column("hospital", sa.String(255), nullable=True),
        sa.Column("prescription_date", sa.String(50), nullable=True),
    )
    op.create_table(
        "medicines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "extracted_data_id",
            sa.Integer(),
            sa.ForeignKey("extracted_data.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("dose", sa.String(100), nullable=True),
        sa.Column("frequency", sa.String(100), nullable=True),
    )

    # =========================================================
    # 3. authenticity_results + drug_interactions
    # =========================================================
    op.create_table(
        "authenticity_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "prescription_id",
            UUID(as_uuid=True),
            sa.ForeignKey("prescriptions.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("authenticity", sa.String(20), nullable=False),
        sa.Column("reasons", JSONB(), nullable=True),
    )
    op.create_table(
        "drug_interactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "prescription_id",
            UUID(as_uuid=True),
            sa.ForeignKey("prescriptions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("drug_a", sa.String(255), nullable=False),
        sa.Column("drug_b", sa.String(255), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("drug_interactions")
    op.drop_table("authenticity_results")
    op.drop_table("medicines")
    op.drop_table("extracted_data")
    op.drop_index("ix_prescriptions_created_at", table_name="prescriptions")
    op.drop_index("ix_prescriptions_user_id", table_name="prescriptions")
    op.drop_table("prescriptions")
