"""Business record: the subset of listing fields the classifier touches."""

from uuid import UUID

from pydantic import Field

from src.models.common import DirectoryBase


class BusinessRecord(DirectoryBase):
    id: UUID
    name: str = ""
    economic_activity_code: str | None = None
    main_category_id: UUID | None = None
    sub_category_id: UUID | None = None
    categories: list[UUID] = Field(default_factory=list)

    @property
    def is_classified(self) -> bool:
        """A manual categories array counts even without a main category."""
        return self.main_category_id is not None or bool(self.categories)
