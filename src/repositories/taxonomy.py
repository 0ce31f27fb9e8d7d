"""Reference-data repositories: ACT_ECON codes, category catalog, mappings.

ActivityCodeRepository: upsert on code (last import wins)
CategoryRepository: main/sub categories, loaded into a CategoryCatalog
CategoryMappingRepository: upsert on (code, main, sub); confidence updated
"""

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.classification.mapping_table import CategoryCatalog, MappingTable
from src.db.tables import (
    ActivityCodeRow,
    CategoryMappingRow,
    MainCategoryRow,
    SubCategoryRow,
)
from src.models.common import CodeLevel, utc_now
from src.models.mapping import CategoryMapping, MainCategory, MappedBy, SubCategory
from src.models.taxonomy import EconomicActivityCode

# ---------------------------------------------------------------------------
# ACT_ECON codes
# ---------------------------------------------------------------------------


class ActivityCodeRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_many(self, codes: Sequence[EconomicActivityCode]) -> int:
        """Insert new codes, update label/level/parent of existing ones."""
        if not codes:
            return 0
        result = await self._session.execute(
            select(ActivityCodeRow).where(
                ActivityCodeRow.code.in_([c.code for c in codes]),
            ),
        )
        existing = {row.code: row for row in result.scalars().all()}
        now = utc_now()
        for code in codes:
            row = existing.get(code.code)
            if row is None:
                self._session.add(ActivityCodeRow(
                    code=code.code,
                    label_fr=code.label,
                    category_level=int(code.level),
                    parent_code=code.parent_code,
                    updated_at=now,
                ))
            else:
                row.label_fr = code.label
                row.category_level = int(code.level)
                row.parent_code = code.parent_code
                row.updated_at = now
        await self._session.flush()
        return len(codes)

    async def get(self, code: str) -> ActivityCodeRow | None:
        return await self._session.get(ActivityCodeRow, code)

    async def list_all(self) -> list[EconomicActivityCode]:
        result = await self._session.execute(
            select(ActivityCodeRow).order_by(ActivityCodeRow.code),
        )
        return [
            EconomicActivityCode(
                code=row.code,
                label=row.label_fr,
                level=CodeLevel(row.category_level),
                parent_code=row.parent_code,
            )
            for row in result.scalars().all()
        ]


# ---------------------------------------------------------------------------
# Category catalog
# ---------------------------------------------------------------------------


class CategoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_main(
        self, *, category_id: UUID, slug: str, label_fr: str, label_en: str = "",
    ) -> MainCategoryRow:
        row = MainCategoryRow(id=category_id, slug=slug, label_fr=label_fr, label_en=label_en)
        self._session.add(row)
        await self._session.flush()
        return row

    async def create_sub(
        self,
        *,
        category_id: UUID,
        main_category_id: UUID,
        slug: str,
        label_fr: str,
        label_en: str = "",
    ) -> SubCategoryRow:
        row = SubCategoryRow(
            id=category_id, main_category_id=main_category_id,
            slug=slug, label_fr=label_fr, label_en=label_en,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def load_catalog(self) -> CategoryCatalog:
        mains = await self._session.execute(select(MainCategoryRow))
        subs = await self._session.execute(select(SubCategoryRow))
        return CategoryCatalog(
            [
                MainCategory(id=r.id, slug=r.slug, label_fr=r.label_fr, label_en=r.label_en)
                for r in mains.scalars().all()
            ],
            [
                SubCategory(
                    id=r.id, main_category_id=r.main_category_id,
                    slug=r.slug, label_fr=r.label_fr, label_en=r.label_en,
                )
                for r in subs.scalars().all()
            ],
        )


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------


def _row_to_mapping(row: CategoryMappingRow) -> CategoryMapping:
    return CategoryMapping(
        economic_activity_code=row.act_econ_code,
        main_category_id=row.main_category_id,
        sub_category_id=row.sub_category_id,
        confidence_score=row.confidence_score,
        mapping_notes=row.mapping_notes,
        mapped_by=MappedBy(row.mapped_by),
    )


class CategoryMappingRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_key(
        self,
        code: str,
        main_category_id: UUID,
        sub_category_id: UUID | None,
    ) -> CategoryMappingRow | None:
        stmt = select(CategoryMappingRow).where(
            CategoryMappingRow.act_econ_code == code,
            CategoryMappingRow.main_category_id == main_category_id,
        )
        # NULL never equals NULL in the unique constraint; match it explicitly.
        if sub_category_id is None:
            stmt = stmt.where(CategoryMappingRow.sub_category_id.is_(None))
        else:
            stmt = stmt.where(CategoryMappingRow.sub_category_id == sub_category_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, mapping: CategoryMapping) -> CategoryMappingRow:
        """Same (code, main, sub) twice updates confidence, never duplicates."""
        row = await self.get_by_key(*mapping.key)
        if row is None:
            row = CategoryMappingRow(
                act_econ_code=mapping.economic_activity_code,
                main_category_id=mapping.main_category_id,
                sub_category_id=mapping.sub_category_id,
                confidence_score=mapping.confidence_score,
                mapping_notes=mapping.mapping_notes,
                mapped_by=mapping.mapped_by.value,
                updated_at=utc_now(),
            )
            self._session.add(row)
        else:
            row.confidence_score = mapping.confidence_score
            if mapping.mapping_notes:
                row.mapping_notes = mapping.mapping_notes
            row.mapped_by = mapping.mapped_by.value
            row.updated_at = utc_now()
        await self._session.flush()
        return row

    async def upsert_many(self, mappings: Iterable[CategoryMapping]) -> int:
        count = 0
        for mapping in mappings:
            await self.upsert(mapping)
            count += 1
        return count

    async def list_all(
        self, *, min_confidence: float | None = None,
    ) -> list[CategoryMapping]:
        stmt = select(CategoryMappingRow).order_by(
            CategoryMappingRow.act_econ_code, CategoryMappingRow.row_id,
        )
        if min_confidence is not None:
            stmt = stmt.where(CategoryMappingRow.confidence_score >= min_confidence)
        result = await self._session.execute(stmt)
        return [_row_to_mapping(r) for r in result.scalars().all()]

    async def load_table(self) -> MappingTable:
        return MappingTable(await self.list_all())
