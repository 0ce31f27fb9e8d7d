"""Category catalog, code-to-category mappings and assignments."""

from enum import StrEnum
from uuid import UUID

from pydantic import Field

from src.models.common import ActivityCodeStr, Confidence, DirectoryBase


class MappedBy(StrEnum):
    """Provenance of a mapping row."""

    MANUAL = "manual"
    AUTO = "auto"
    RANGE = "range"


class MainCategory(DirectoryBase):
    id: UUID
    slug: str = Field(..., min_length=1)
    label_fr: str = ""
    label_en: str = ""


class SubCategory(DirectoryBase):
    id: UUID
    main_category_id: UUID
    slug: str = Field(..., min_length=1)
    label_fr: str = ""
    label_en: str = ""


class CategoryMapping(DirectoryBase):
    """Candidate assignment of a code to a main (and optional sub) category.

    Upsert key: (economic_activity_code, main_category_id, sub_category_id).
    """

    economic_activity_code: ActivityCodeStr
    main_category_id: UUID
    sub_category_id: UUID | None = None
    confidence_score: Confidence
    mapping_notes: str = ""
    mapped_by: MappedBy = MappedBy.MANUAL

    @property
    def key(self) -> tuple[str, UUID, UUID | None]:
        return (
            self.economic_activity_code,
            self.main_category_id,
            self.sub_category_id,
        )


class CategoryAssignment(DirectoryBase):
    """Category fields to write onto a business record."""

    economic_activity_code: str
    main_category_id: UUID
    sub_category_id: UUID | None = None
    confidence_score: Confidence

    model_config = {**DirectoryBase.model_config, "frozen": True}

    @property
    def categories(self) -> list[UUID]:
        """Array form read by the listing pages: main first, then sub."""
        if self.sub_category_id is None:
            return [self.main_category_id]
        return [self.main_category_id, self.sub_category_id]
