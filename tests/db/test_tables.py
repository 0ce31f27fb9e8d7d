"""Tests for the ORM tables in src/db/tables.py.

Tests verify:
- All five tables are created from Base.metadata
- FlexJSON categories column round-trips a list
- UNIQUE (code, main, sub) on mappings
- Codes are stored as fixed-width strings
"""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.tables import ActivityCodeRow, BusinessRow, CategoryMappingRow
from src.models.common import new_uuid7, utc_now


class TestTableCreation:
    EXPECTED_TABLES = {
        "act_econ_codes",
        "main_categories",
        "sub_categories",
        "act_econ_category_mappings",
        "businesses",
    }

    @pytest.mark.anyio
    async def test_all_tables_exist(self, db_engine) -> None:
        async with db_engine.connect() as conn:
            table_names = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
        assert self.EXPECTED_TABLES.issubset(set(table_names)), (
            f"Missing tables: {self.EXPECTED_TABLES - set(table_names)}"
        )


class TestActivityCodeRow:
    @pytest.mark.anyio
    async def test_code_kept_as_string(self, db_session: AsyncSession) -> None:
        db_session.add(ActivityCodeRow(
            code="0110", label_fr="Élevage", category_level=2,
            parent_code="0100", updated_at=utc_now(),
        ))
        await db_session.flush()
        row = await db_session.get(ActivityCodeRow, "0110")
        assert row.parent_code == "0100"


class TestCategoryMappingRow:
    @pytest.mark.anyio
    async def test_unique_code_main_sub(self, db_session: AsyncSession) -> None:
        main_id, sub_id = new_uuid7(), new_uuid7()
        for _ in range(2):
            db_session.add(CategoryMappingRow(
                act_econ_code="4520", main_category_id=main_id,
                sub_category_id=sub_id, confidence_score=0.9, updated_at=utc_now(),
            ))
        with pytest.raises(IntegrityError):
            await db_session.flush()


class TestBusinessRow:
    @pytest.mark.anyio
    async def test_categories_json(self, db_session: AsyncSession) -> None:
        main_id = new_uuid7()
        row = BusinessRow(
            id=new_uuid7(), name="Garage Tremblay", act_econ_code="4520",
            main_category_id=main_id, categories=[str(main_id)],
        )
        db_session.add(row)
        await db_session.flush()
        fetched = await db_session.get(BusinessRow, row.id)
        assert fetched.categories == [str(main_id)]
