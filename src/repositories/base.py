"""Record store interface consumed by the classification pipeline.

The batch runner and the coverage reporter only see this interface; the
SQLAlchemy implementation lives in src.repositories.businesses. Tests plug
in an in-memory store to inject failures.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence
from uuid import UUID

from src.models.business import BusinessRecord
from src.models.mapping import CategoryAssignment


class RecordStoreError(Exception):
    """A read or write against the record store failed. Recoverable."""


class RecordStore(ABC):
    """Business records as seen by the classifier."""

    @abstractmethod
    async def fetch_unclassified(
        self,
        *,
        limit: int,
        after_id: UUID | None = None,
        codes: Collection[str] | None = None,
    ) -> list[BusinessRecord]:
        """Records with a code and no main category, ordered by id.

        Keyset pagination: only ids strictly greater than ``after_id``.
        """
        ...

    @abstractmethod
    async def assign_categories(
        self,
        record_ids: Sequence[UUID],
        assignment: CategoryAssignment,
    ) -> int:
        """Set the category fields where main_category_id is still NULL.

        Returns the number of records actually updated.
        """
        ...

    @abstractmethod
    async def count_businesses(
        self,
        *,
        with_code: bool | None = None,
        with_category: bool | None = None,
    ) -> int:
        ...

    @abstractmethod
    async def category_counts(self) -> dict[UUID, int]:
        """Number of records per main category."""
        ...

    @abstractmethod
    async def code_counts(self) -> dict[str, int]:
        """Number of records per ACT_ECON code (records with a code only)."""
        ...
