"""SQLAlchemy ORM table models for the business directory classification.

Uses FlexJSON (JSONB on Postgres, JSON on SQLite) for the categories array.

Categories:
- REFERENCE: ActivityCode (loaded once from the registry extract)
- CATALOG: MainCategory, SubCategory
- MAPPING: CategoryMapping (upserted by code/main/sub)
- OPERATIONAL: Business (category fields set by the classifier)
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from src.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class ActivityCodeRow(Base):
    """Economic-activity code. Upsert key: code."""

    __tablename__ = "act_econ_codes"

    code: Mapped[str] = mapped_column(String(10), primary_key=True)
    label_fr: Mapped[str] = mapped_column(Text, nullable=False)
    category_level: Mapped[int] = mapped_column(Integer, nullable=False)
    parent_code: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Category catalog
# ---------------------------------------------------------------------------


class MainCategoryRow(Base):
    __tablename__ = "main_categories"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    label_fr: Mapped[str] = mapped_column(String(255), nullable=False)
    label_en: Mapped[str] = mapped_column(String(255), default="")


class SubCategoryRow(Base):
    __tablename__ = "sub_categories"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    main_category_id: Mapped[UUID] = mapped_column(
        ForeignKey("main_categories.id"), nullable=False, index=True
    )
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    label_fr: Mapped[str] = mapped_column(String(255), nullable=False)
    label_en: Mapped[str] = mapped_column(String(255), default="")


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


class CategoryMappingRow(Base):
    """Code to category mapping. Surrogate PK; one row per (code, main, sub)."""

    __tablename__ = "act_econ_category_mappings"
    __table_args__ = (
        UniqueConstraint(
            "act_econ_code", "main_category_id", "sub_category_id",
            name="uq_act_econ_mapping_code_main_sub",
        ),
    )

    row_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    act_econ_code: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    main_category_id: Mapped[UUID] = mapped_column(nullable=False)
    sub_category_id: Mapped[UUID | None] = mapped_column(nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    mapping_notes: Mapped[str] = mapped_column(Text, default="")
    mapped_by: Mapped[str] = mapped_column(String(50), default="manual", nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Businesses (operational)
# ---------------------------------------------------------------------------


class BusinessRow(Base):
    """Business listing. Only the fields the classifier reads or writes."""

    __tablename__ = "businesses"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    act_econ_code: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    main_category_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    sub_category_id: Mapped[UUID | None] = mapped_column(nullable=True)
    categories = mapped_column(FlexJSON, nullable=True)
