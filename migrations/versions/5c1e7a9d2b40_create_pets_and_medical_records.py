"""create pets and medical records

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-09-14 09:30:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1e7a9d2b40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create the pets and medical_records tables of the record store."""
    # -- pets table --
    op.create_table(
        "pets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("species", sa.String(100), nullable=True),
        sa.Column("breed", sa.String(100), nullable=True),
        sa.Column("sex", sa.String(20), nullable=True),
        sa.Column("age", sa.Float(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pets_tenant_id", "pets", ["tenant_id"])

    # -- medical_records table --
    op.create_table(
        "medical_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("pet_id", sa.Uuid(), nullable=False),
        sa.Column("veterinarian", sa.String(200), nullable=True),
        sa.Column("visit_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subjective", sa.Text(), nullable=True),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("assessment", sa.Text(), nullable=True),
        sa.Column("plan", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["pet_id"], ["pets.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_medical_records_tenant_id", "medical_records", ["tenant_id"])
    op.create_index("ix_medical_records_pet_id", "medical_records", ["pet_id"])


def downgrade() -> None:
    """Drop the record store tables."""
    op.drop_index("ix_medical_records_pet_id", table_name="medical_records")
    op.drop_index("ix_medical_records_tenant_id", table_name="medical_records")
    op.drop_table("medical_records")
    op.drop_index("ix_pets_tenant_id", table_name="pets")
    op.drop_table("pets")
