"""Batch run and coverage report models."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import Field

from src.models.common import DirectoryBase, UTCTimestamp, utc_now


class RunState(StrEnum):
    """Batch runner lifecycle.

    IDLE -> FETCHING -> PROCESSING -> WRITING -> (FETCHING | DONE)
    """

    IDLE = "IDLE"
    FETCHING = "FETCHING"
    PROCESSING = "PROCESSING"
    WRITING = "WRITING"
    DONE = "DONE"


class PageFailure(DirectoryBase):
    """A page (or part of one) whose writes did not complete."""

    page: int
    codes: list[str] = Field(default_factory=list)
    records: int = 0
    reason: str = ""


class RunReport(DirectoryBase):
    """Counters for one classification run.

    Within a pass every fetched record lands in exactly one of updated,
    skipped or errors. Retry rounds add to the same counters.
    ``skip_reasons`` breaks ``skipped`` down by NoOp reason.
    """

    processed: int = 0
    updated: int = 0
    skipped: int = 0
    skip_reasons: dict[str, int] = Field(default_factory=dict)
    errors: int = 0
    pages: int = 0
    failed_pages: int = 0
    retry_rounds: int = 0
    dry_run: bool = False
    interrupted: bool = False
    failures: list[PageFailure] = Field(default_factory=list)
    failed_codes: list[str] = Field(default_factory=list)
    started_at: UTCTimestamp = Field(default_factory=utc_now)
    finished_at: datetime | None = None

    def record_skip(self, reason: str, count: int = 1) -> None:
        if count <= 0:
            return
        self.skipped += count
        self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + count

    @property
    def succeeded(self) -> bool:
        """Nothing left to retry."""
        return not self.failed_codes and not self.interrupted


class UnmappedCode(DirectoryBase):
    code: str
    count: int


class CoverageReport(DirectoryBase):
    total: int = 0
    with_code: int = 0
    with_category: int = 0
    by_category: dict[UUID, int] = Field(default_factory=dict)
    unmapped_codes: list[UnmappedCode] = Field(default_factory=list)
    unmapped_records: int = 0

    @property
    def coverage_ratio(self) -> float:
        """Share of records with a code that carry a category."""
        if self.with_code == 0:
            return 0.0
        return self.with_category / self.with_code
