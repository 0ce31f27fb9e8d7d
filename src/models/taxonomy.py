"""Economic-activity code taxonomy models.

The code table is reference data: created once from the registry extract,
read-only afterwards.
"""

from pydantic import Field, model_validator

from src.models.common import ActivityCodeStr, CodeLevel, DirectoryBase


class EconomicActivityCode(DirectoryBase):
    """One code of the three-level ACT_ECON hierarchy."""

    code: ActivityCodeStr
    label: str = ""
    level: CodeLevel
    parent_code: ActivityCodeStr | None = None

    model_config = {**DirectoryBase.model_config, "frozen": True}

    @model_validator(mode="after")
    def _parent_matches_level(self) -> "EconomicActivityCode":
        if self.level == CodeLevel.MAJOR and self.parent_code is not None:
            raise ValueError(f"Level 1 code {self.code} cannot have a parent.")
        if self.level != CodeLevel.MAJOR and self.parent_code is None:
            raise ValueError(f"Level {int(self.level)} code {self.code} needs a parent.")
        return self


class TaxonomyLoadResult(DirectoryBase):
    """Outcome of loading the code table from a delimited source."""

    codes: dict[str, EconomicActivityCode] = Field(default_factory=dict)
    rows_read: int = 0
    ignored: int = Field(default=0, description="Rows of other code families.")
    skipped: int = Field(default=0, description="Malformed rows.")
    duplicates: int = 0
    orphans: list[str] = Field(default_factory=list)

    def by_level(self, level: CodeLevel) -> list[EconomicActivityCode]:
        return sorted(
            (c for c in self.codes.values() if c.level == level),
            key=lambda c: c.code,
        )

    def children_of(self, code: str) -> list[EconomicActivityCode]:
        return sorted(
            (c for c in self.codes.values() if c.parent_code == code),
            key=lambda c: c.code,
        )
