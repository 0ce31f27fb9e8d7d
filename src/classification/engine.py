"""Classification engine: one business record at a time.

classify(record) returns a CategoryAssignment, or None when there is
nothing to do (the NoOp). A NoOp is never an error:

- record already has a main category or a categories array (manual
  assignments are kept)
- record has no ACT_ECON code
- code is in the excluded generic-code list
- no mapping reaches the confidence threshold

Classification is additive and idempotent: applying it twice gives the
same record as applying it once.
"""

from collections.abc import Iterable
from enum import StrEnum

from src.classification.mapping_table import MappingTable
from src.models.business import BusinessRecord
from src.models.mapping import CategoryAssignment

DEFAULT_MIN_CONFIDENCE = 0.5


class SkipReason(StrEnum):
    ALREADY_CLASSIFIED = "ALREADY_CLASSIFIED"
    NO_CODE = "NO_CODE"
    EXCLUDED_CODE = "EXCLUDED_CODE"
    NO_MAPPING = "NO_MAPPING"


class ClassificationEngine:
    """Looks up the best mapping for a record's code."""

    def __init__(
        self,
        table: MappingTable,
        *,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        excluded_codes: Iterable[str] = (),
    ) -> None:
        self._table = table
        self._min_confidence = min_confidence
        self._excluded = frozenset(excluded_codes)

    def is_mappable(self, code: str) -> bool:
        """True when a record with ``code`` would receive a category."""
        return self.assignment_for(code) is not None

    def assignment_for(self, code: str) -> CategoryAssignment | None:
        if code in self._excluded:
            return None
        mapping = self._table.best(code, min_confidence=self._min_confidence)
        if mapping is None:
            return None
        return CategoryAssignment(
            economic_activity_code=code,
            main_category_id=mapping.main_category_id,
            sub_category_id=mapping.sub_category_id,
            confidence_score=mapping.confidence_score,
        )

    def skip_reason(self, record: BusinessRecord) -> SkipReason | None:
        """Why classify() would be a NoOp for ``record``; None if it would not."""
        if record.is_classified:
            return SkipReason.ALREADY_CLASSIFIED
        code = record.economic_activity_code
        if not code:
            return SkipReason.NO_CODE
        if code in self._excluded:
            return SkipReason.EXCLUDED_CODE
        if self.assignment_for(code) is None:
            return SkipReason.NO_MAPPING
        return None

    def classify(self, record: BusinessRecord) -> CategoryAssignment | None:
        if record.is_classified or not record.economic_activity_code:
            return None
        return self.assignment_for(record.economic_activity_code)

    def apply(self, record: BusinessRecord) -> BusinessRecord:
        """Return ``record`` with the assignment applied (unchanged on NoOp)."""
        assignment = self.classify(record)
        if assignment is None:
            return record
        return record.model_copy(
            update={
                "main_category_id": assignment.main_category_id,
                "sub_category_id": assignment.sub_category_id,
                "categories": assignment.categories,
            },
        )
