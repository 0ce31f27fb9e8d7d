"""Fixtures for the classification tests.

InMemoryRecordStore implements RecordStore over a dict so runner tests can
inject write failures, fetch failures, slow fetches and slow writes
without a database.
"""

import asyncio
from collections.abc import Collection, Sequence
from uuid import UUID

import pytest

from src.classification.engine import ClassificationEngine
from src.classification.mapping_table import MappingTable
from src.models.business import BusinessRecord
from src.models.common import new_uuid7
from src.models.mapping import CategoryAssignment, CategoryMapping
from src.repositories.base import RecordStore, RecordStoreError


class InMemoryRecordStore(RecordStore):
    """Dict-backed store with failure injection.

    - failing_codes: assign_categories raises RecordStoreError for these
      codes, ``fail_times`` times per code (None = always)
    - slow_codes: assign_categories sleeps ``slow_seconds`` for these codes
    - fetch_failures: the next N fetch calls raise RecordStoreError
    - slow_fetches: the next N fetch calls sleep ``fetch_delay`` first
    """

    def __init__(self, records: Sequence[BusinessRecord] = ()) -> None:
        self.records: dict[UUID, BusinessRecord] = {r.id: r for r in records}
        self.failing_codes: set[str] = set()
        self.fail_times: int | None = None
        self.slow_codes: set[str] = set()
        self.slow_seconds = 1.0
        self.fetch_failures = 0
        self.slow_fetches = 0
        self.fetch_delay = 1.0
        self.fetch_calls = 0
        self.assign_calls: list[tuple[str, int]] = []
        self._failures_by_code: dict[str, int] = {}

    def add(
        self,
        code: str | None,
        *,
        main_category_id: UUID | None = None,
        categories: list[UUID] | None = None,
    ) -> BusinessRecord:
        if categories is None:
            categories = [main_category_id] if main_category_id else []
        record = BusinessRecord(
            id=new_uuid7(),
            name=f"Entreprise {len(self.records) + 1}",
            economic_activity_code=code,
            main_category_id=main_category_id,
            categories=categories,
        )
        self.records[record.id] = record
        return record

    async def fetch_unclassified(
        self,
        *,
        limit: int,
        after_id: UUID | None = None,
        codes: Collection[str] | None = None,
    ) -> list[BusinessRecord]:
        self.fetch_calls += 1
        if self.slow_fetches > 0:
            self.slow_fetches -= 1
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_failures > 0:
            self.fetch_failures -= 1
            raise RecordStoreError("connection reset")
        rows = sorted(
            (
                r for r in self.records.values()
                if r.economic_activity_code
                and not r.is_classified
                and (after_id is None or r.id > after_id)
                and (codes is None or r.economic_activity_code in codes)
            ),
            key=lambda r: r.id,
        )
        return rows[:limit]

    async def assign_categories(
        self,
        record_ids: Sequence[UUID],
        assignment: CategoryAssignment,
    ) -> int:
        code = assignment.economic_activity_code
        self.assign_calls.append((code, len(record_ids)))
        if code in self.slow_codes:
            await asyncio.sleep(self.slow_seconds)
        if code in self.failing_codes:
            seen = self._failures_by_code.get(code, 0)
            if self.fail_times is None or seen < self.fail_times:
                self._failures_by_code[code] = seen + 1
                raise RecordStoreError(f"write rejected for {code}")
        written = 0
        for record_id in record_ids:
            record = self.records[record_id]
            if record.is_classified:
                continue
            self.records[record_id] = record.model_copy(
                update={
                    "main_category_id": assignment.main_category_id,
                    "sub_category_id": assignment.sub_category_id,
                    "categories": assignment.categories,
                },
            )
            written += 1
        return written

    async def count_businesses(
        self,
        *,
        with_code: bool | None = None,
        with_category: bool | None = None,
    ) -> int:
        count = 0
        for r in self.records.values():
            if with_code is not None and bool(r.economic_activity_code) != with_code:
                continue
            if with_category is not None and r.is_classified != with_category:
                continue
            count += 1
        return count

    async def category_counts(self) -> dict[UUID, int]:
        counts: dict[UUID, int] = {}
        for r in self.records.values():
            if r.main_category_id is not None:
                counts[r.main_category_id] = counts.get(r.main_category_id, 0) + 1
        return counts

    async def code_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for r in self.records.values():
            if r.economic_activity_code:
                code = r.economic_activity_code
                counts[code] = counts.get(code, 0) + 1
        return counts

    def unclassified_with_code(self) -> list[BusinessRecord]:
        return [
            r for r in self.records.values()
            if r.economic_activity_code and not r.is_classified
        ]


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def table(agriculture, construction, transport, garages) -> MappingTable:
    """0111 -> agriculture, 4120 -> construction, 4520 -> transport/garages."""
    return MappingTable([
        CategoryMapping(
            economic_activity_code="0111", main_category_id=agriculture.id,
            confidence_score=0.9,
        ),
        CategoryMapping(
            economic_activity_code="4120", main_category_id=construction.id,
            confidence_score=0.8,
        ),
        CategoryMapping(
            economic_activity_code="4520", main_category_id=transport.id,
            sub_category_id=garages.id, confidence_score=0.95,
        ),
        CategoryMapping(
            economic_activity_code="7499", main_category_id=construction.id,
            confidence_score=0.3,
        ),
    ])


@pytest.fixture
def engine(table) -> ClassificationEngine:
    return ClassificationEngine(table)
