"""Business repositories.

BusinessRepository works inside a caller-owned session (add/flush/execute,
never commit). SqlRecordStore implements the RecordStore interface by
running each call in its own unit of work, so a failed page never rolls
back pages that already succeeded.
"""

from collections.abc import Collection, Sequence
from uuid import UUID

from sqlalchemy import ColumnElement, Text, and_, cast, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.session import session_scope
from src.db.tables import BusinessRow
from src.models.business import BusinessRecord
from src.models.mapping import CategoryAssignment
from src.repositories.base import RecordStore, RecordStoreError


def _has_code() -> ColumnElement[bool]:
    return and_(BusinessRow.act_econ_code.is_not(None), BusinessRow.act_econ_code != "")


def _unclassified() -> ColumnElement[bool]:
    """No main category and no categories array (SQL NULL, JSON null or [])."""
    return and_(
        BusinessRow.main_category_id.is_(None),
        or_(
            BusinessRow.categories.is_(None),
            cast(BusinessRow.categories, Text).in_(["null", "[]"]),
        ),
    )


def _to_record(row: BusinessRow) -> BusinessRecord:
    return BusinessRecord(
        id=row.id,
        name=row.name,
        economic_activity_code=row.act_econ_code,
        main_category_id=row.main_category_id,
        sub_category_id=row.sub_category_id,
        categories=row.categories or [],
    )


class BusinessRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        business_id: UUID,
        name: str,
        act_econ_code: str | None = None,
        main_category_id: UUID | None = None,
        sub_category_id: UUID | None = None,
        categories: list[UUID] | None = None,
    ) -> BusinessRow:
        row = BusinessRow(
            id=business_id,
            name=name,
            act_econ_code=act_econ_code,
            main_category_id=main_category_id,
            sub_category_id=sub_category_id,
            categories=[str(c) for c in categories] if categories else None,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, business_id: UUID) -> BusinessRow | None:
        return await self._session.get(BusinessRow, business_id)

    async def list_unclassified(
        self,
        *,
        limit: int,
        after_id: UUID | None = None,
        codes: Collection[str] | None = None,
    ) -> list[BusinessRow]:
        stmt = select(BusinessRow).where(_has_code(), _unclassified())
        if after_id is not None:
            stmt = stmt.where(BusinessRow.id > after_id)
        if codes is not None:
            stmt = stmt.where(BusinessRow.act_econ_code.in_(list(codes)))
        stmt = stmt.order_by(BusinessRow.id).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def assign_categories(
        self,
        business_ids: Sequence[UUID],
        *,
        main_category_id: UUID,
        sub_category_id: UUID | None,
        categories: list[UUID],
    ) -> int:
        """Compare-and-set: only rows that are still unclassified."""
        if not business_ids:
            return 0
        stmt = (
            update(BusinessRow)
            .where(
                BusinessRow.id.in_(list(business_ids)),
                _unclassified(),
            )
            .values(
                main_category_id=main_category_id,
                sub_category_id=sub_category_id,
                categories=[str(c) for c in categories],
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def count(
        self,
        *,
        with_code: bool | None = None,
        with_category: bool | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(BusinessRow)
        if with_code is True:
            stmt = stmt.where(_has_code())
        elif with_code is False:
            stmt = stmt.where(~_has_code())
        if with_category is True:
            stmt = stmt.where(~_unclassified())
        elif with_category is False:
            stmt = stmt.where(_unclassified())
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def count_by_category(self) -> dict[UUID, int]:
        result = await self._session.execute(
            select(BusinessRow.main_category_id, func.count())
            .where(BusinessRow.main_category_id.is_not(None))
            .group_by(BusinessRow.main_category_id),
        )
        return {category_id: int(n) for category_id, n in result.all()}

    async def count_by_code(self) -> dict[str, int]:
        result = await self._session.execute(
            select(BusinessRow.act_econ_code, func.count())
            .where(_has_code())
            .group_by(BusinessRow.act_econ_code),
        )
        return {code: int(n) for code, n in result.all()}


class SqlRecordStore(RecordStore):
    """RecordStore over SQLAlchemy. One unit of work per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def fetch_unclassified(
        self,
        *,
        limit: int,
        after_id: UUID | None = None,
        codes: Collection[str] | None = None,
    ) -> list[BusinessRecord]:
        try:
            async with session_scope(self._factory) as session:
                rows = await BusinessRepository(session).list_unclassified(
                    limit=limit, after_id=after_id, codes=codes,
                )
                return [_to_record(r) for r in rows]
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Fetching unclassified businesses failed: {exc}") from exc

    async def assign_categories(
        self,
        record_ids: Sequence[UUID],
        assignment: CategoryAssignment,
    ) -> int:
        try:
            async with session_scope(self._factory) as session:
                return await BusinessRepository(session).assign_categories(
                    record_ids,
                    main_category_id=assignment.main_category_id,
                    sub_category_id=assignment.sub_category_id,
                    categories=assignment.categories,
                )
        except SQLAlchemyError as exc:
            raise RecordStoreError(
                f"Updating {len(record_ids)} businesses for code "
                f"{assignment.economic_activity_code} failed: {exc}"
            ) from exc

    async def count_businesses(
        self,
        *,
        with_code: bool | None = None,
        with_category: bool | None = None,
    ) -> int:
        async with session_scope(self._factory) as session:
            return await BusinessRepository(session).count(
                with_code=with_code, with_category=with_category,
            )

    async def category_counts(self) -> dict[UUID, int]:
        async with session_scope(self._factory) as session:
            return await BusinessRepository(session).count_by_category()

    async def code_counts(self) -> dict[str, int]:
        async with session_scope(self._factory) as session:
            return await BusinessRepository(session).count_by_code()
