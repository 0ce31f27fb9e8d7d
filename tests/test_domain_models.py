"""Tests for domain models and settings."""

import pytest
from pydantic import ValidationError

from src.config.settings import Environment, Settings
from src.models.business import BusinessRecord
from src.models.common import CodeLevel, new_uuid7
from src.models.mapping import CategoryAssignment, CategoryMapping
from src.models.run import CoverageReport, RunReport
from src.models.taxonomy import EconomicActivityCode, TaxonomyLoadResult


class TestEconomicActivityCode:
    def test_major_without_parent(self) -> None:
        code = EconomicActivityCode(code="0100", label="Agriculture", level=CodeLevel.MAJOR)
        assert code.parent_code is None

    def test_major_with_parent_rejected(self) -> None:
        with pytest.raises(ValidationError, match="cannot have a parent"):
            EconomicActivityCode(code="0100", level=CodeLevel.MAJOR, parent_code="0000")

    def test_specific_needs_parent(self) -> None:
        with pytest.raises(ValidationError, match="needs a parent"):
            EconomicActivityCode(code="0111", level=CodeLevel.SPECIFIC)

    @pytest.mark.parametrize("bad", ["01", "01a1", ""])
    def test_code_format(self, bad) -> None:
        with pytest.raises(ValidationError):
            EconomicActivityCode(code=bad, level=CodeLevel.MAJOR)

    def test_frozen(self) -> None:
        code = EconomicActivityCode(code="0100", level=CodeLevel.MAJOR)
        with pytest.raises(ValidationError):
            code.label = "x"

    def test_load_result_helpers(self) -> None:
        result = TaxonomyLoadResult(codes={
            "0100": EconomicActivityCode(code="0100", level=CodeLevel.MAJOR),
            "0110": EconomicActivityCode(
                code="0110", level=CodeLevel.INTERMEDIATE, parent_code="0100",
            ),
        })
        assert [c.code for c in result.by_level(CodeLevel.INTERMEDIATE)] == ["0110"]
        assert [c.code for c in result.children_of("0100")] == ["0110"]


class TestMappingModels:
    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CategoryMapping(
                economic_activity_code="0111", main_category_id=new_uuid7(),
                confidence_score=1.5,
            )

    def test_assignment_is_hashable_group_key(self) -> None:
        main = new_uuid7()
        a = CategoryAssignment(
            economic_activity_code="0111", main_category_id=main, confidence_score=0.9,
        )
        b = CategoryAssignment(
            economic_activity_code="0111", main_category_id=main, confidence_score=0.9,
        )
        assert {a: 1}[b] == 1
        assert a.categories == [main]


class TestReports:
    def test_business_is_classified(self) -> None:
        record = BusinessRecord(id=new_uuid7(), main_category_id=new_uuid7())
        assert record.is_classified

    def test_categories_without_main_is_classified(self) -> None:
        record = BusinessRecord(id=new_uuid7(), categories=[new_uuid7()])
        assert record.main_category_id is None
        assert record.is_classified

    def test_empty_record_is_unclassified(self) -> None:
        assert not BusinessRecord(id=new_uuid7(), economic_activity_code="4573").is_classified

    def test_run_report_success(self) -> None:
        assert RunReport().succeeded
        assert not RunReport(failed_codes=["0111"]).succeeded
        assert not RunReport(interrupted=True).succeeded

    def test_coverage_ratio(self) -> None:
        assert CoverageReport(with_code=60, with_category=40).coverage_ratio == pytest.approx(2 / 3)


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.TAXONOMY_CODE_TYPE == "ACT_ECON"
        assert settings.MIN_MAPPING_CONFIDENCE == 0.5
        assert settings.EXCLUDED_ACTIVITY_CODES == []
        assert settings.ENVIRONMENT == Environment.DEV

    def test_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("EXCLUDED_ACTIVITY_CODES", '["0001"]')
        monkeypatch.setenv("CLASSIFY_PAGE_SIZE", "200")
        settings = Settings()
        assert settings.EXCLUDED_ACTIVITY_CODES == ["0001"]
        assert settings.CLASSIFY_PAGE_SIZE == 200

    def test_invalid_confidence_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(MIN_MAPPING_CONFIDENCE=1.5)
