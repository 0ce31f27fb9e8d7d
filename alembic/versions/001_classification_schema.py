"""ACT_ECON codes, category catalog, mappings and businesses.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FlexJSON = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "act_econ_codes",
        sa.Column("code", sa.String(10), primary_key=True),
        sa.Column("label_fr", sa.Text, nullable=False),
        sa.Column("category_level", sa.Integer, nullable=False),
        sa.Column("parent_code", sa.String(10), nullable=True, index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "main_categories",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("label_fr", sa.String(255), nullable=False),
        sa.Column("label_en", sa.String(255), nullable=False, server_default=""),
    )

    op.create_table(
        "sub_categories",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "main_category_id", sa.Uuid,
            sa.ForeignKey("main_categories.id"), nullable=False, index=True,
        ),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("label_fr", sa.String(255), nullable=False),
        sa.Column("label_en", sa.String(255), nullable=False, server_default=""),
    )

    op.create_table(
        "act_econ_category_mappings",
        sa.Column("row_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("act_econ_code", sa.String(10), nullable=False, index=True),
        sa.Column("main_category_id", sa.Uuid, nullable=False),
        sa.Column("sub_category_id", sa.Uuid, nullable=True),
        sa.Column("confidence_score", sa.Float, nullable=False),
        sa.Column("mapping_notes", sa.Text, nullable=False, server_default=""),
        sa.Column("mapped_by", sa.String(50), nullable=False, server_default="manual"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "act_econ_code", "main_category_id", "sub_category_id",
            name="uq_act_econ_mapping_code_main_sub",
        ),
    )

    op.create_table(
        "businesses",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("act_econ_code", sa.String(10), nullable=True, index=True),
        sa.Column("main_category_id", sa.Uuid, nullable=True, index=True),
        sa.Column("sub_category_id", sa.Uuid, nullable=True),
        sa.Column("categories", FlexJSON, nullable=True),
    )
    # Partial index backing the runner's fetch predicate.
    op.create_index(
        "ix_businesses_unclassified",
        "businesses",
        ["id"],
        postgresql_where=sa.text(
            "act_econ_code IS NOT NULL AND main_category_id IS NULL"
        ),
    )


def downgrade() -> None:
    op.drop_index("ix_businesses_unclassified", table_name="businesses")
    op.drop_table("businesses")
    op.drop_table("act_econ_category_mappings")
    op.drop_table("sub_categories")
    op.drop_table("main_categories")
    op.drop_table("act_econ_codes")
