"""Coverage reporter: how much of the population is classified.

Read-only. Unmapped codes are the codes carried by records for which the
engine would not produce an assignment (no mapping at or above the
threshold, or an excluded generic code), sorted by number of records so
operators know which mappings to add next.
"""

from src.classification.engine import ClassificationEngine
from src.models.run import CoverageReport, UnmappedCode
from src.repositories.base import RecordStore


class CoverageReporter:
    def __init__(self, store: RecordStore, engine: ClassificationEngine) -> None:
        self._store = store
        self._engine = engine

    async def report(self, *, top: int | None = None) -> CoverageReport:
        """Compute coverage statistics.

        Args:
            top: keep only the ``top`` most frequent unmapped codes in the
                list. ``unmapped_records`` always covers every unmapped code.
        """
        total = await self._store.count_businesses()
        with_code = await self._store.count_businesses(with_code=True)
        with_category = await self._store.count_businesses(
            with_code=True, with_category=True,
        )
        by_category = await self._store.category_counts()
        code_counts = await self._store.code_counts()

        unmapped = [
            UnmappedCode(code=code, count=count)
            for code, count in code_counts.items()
            if not self._engine.is_mappable(code)
        ]
        unmapped.sort(key=lambda u: (-u.count, u.code))

        return CoverageReport(
            total=total,
            with_code=with_code,
            with_category=with_category,
            by_category=dict(sorted(by_category.items(), key=lambda kv: -kv[1])),
            unmapped_codes=unmapped[:top] if top is not None else unmapped,
            unmapped_records=sum(u.count for u in unmapped),
        )
