"""Tests for range and keyword mapping heuristics."""

import pytest

from src.classification.mapping_table import CategoryCatalog
from src.classification.rules import (
    RANGE_CONFIDENCE,
    KeywordRule,
    RangeRule,
    build_keyword_mappings,
    build_range_mappings,
)
from src.models.common import CodeLevel
from src.models.mapping import MappedBy
from src.models.taxonomy import EconomicActivityCode


def _code(code: str, label: str) -> EconomicActivityCode:
    return EconomicActivityCode(
        code=code, label=label, level=CodeLevel.SPECIFIC, parent_code=code[:3] + "0",
    )


@pytest.fixture
def catalog(agriculture, construction, transport) -> CategoryCatalog:
    return CategoryCatalog([agriculture, construction, transport])


class TestRangeMappings:
    def test_inclusive_bounds(self) -> None:
        rule = RangeRule(4000, 4499, "construction-et-renovation")
        assert rule.matches("4000")
        assert rule.matches("4499")
        assert not rule.matches("4500")

    def test_default_ranges(self, catalog, agriculture, construction) -> None:
        mappings = build_range_mappings(
            [_code("0111", "Bovins laitiers"), _code("4121", "Maisons neuves")],
            catalog,
        )
        by_code = {m.economic_activity_code: m for m in mappings}
        assert by_code["0111"].main_category_id == agriculture.id
        assert by_code["4121"].main_category_id == construction.id
        assert all(m.confidence_score == RANGE_CONFIDENCE for m in mappings)
        assert all(m.mapped_by == MappedBy.RANGE for m in mappings)

    def test_unknown_slug_rules_ignored(self, catalog) -> None:
        """Commerce range exists but the catalog has no such category."""
        assert build_range_mappings([_code("5211", "Épicerie")], catalog) == []

    def test_never_mapped_code(self, catalog) -> None:
        rules = [RangeRule(9000, 9999, "construction-et-renovation")]
        assert build_range_mappings([_code("9999", "Autres services")], catalog, rules) == []

    def test_first_matching_rule_wins(self, catalog, agriculture) -> None:
        rules = [
            RangeRule(100, 200, "agriculture-et-environnement"),
            RangeRule(100, 4000, "construction-et-renovation"),
        ]
        mappings = build_range_mappings([_code("0150", "x")], catalog, rules)
        assert mappings[0].main_category_id == agriculture.id


class TestKeywordMappings:
    def test_score_prefix_and_keywords(self) -> None:
        rule = KeywordRule("agriculture-et-environnement", ("élevage", "bétail"), ("01",))
        assert rule.score(_code("0111", "Élevage de bétail")) == 20
        assert rule.score(_code("4511", "Élevage")) == 5
        assert rule.score(_code("4511", "Garage")) == 0

    def test_confidence_normalized(self, catalog, agriculture) -> None:
        rules = [KeywordRule("agriculture-et-environnement", ("ferme",), ("01",))]
        mappings = build_keyword_mappings([_code("0111", "Ferme laitière")], catalog, rules)
        assert mappings[0].main_category_id == agriculture.id
        assert mappings[0].confidence_score == pytest.approx(15 / 20)
        assert mappings[0].mapped_by == MappedBy.AUTO

    def test_confidence_capped(self, catalog) -> None:
        rules = [KeywordRule("agriculture-et-environnement", ("a", "b", "c"), ("01",))]
        mappings = build_keyword_mappings([_code("0111", "a b c")], catalog, rules)
        assert mappings[0].confidence_score == 1.0

    def test_best_rule_wins(self, catalog, transport) -> None:
        rules = [
            KeywordRule("construction-et-renovation", ("garage",)),
            KeywordRule("automobile-et-transport", ("garage", "automobile")),
        ]
        mappings = build_keyword_mappings(
            [_code("4711", "Garage de réparation automobile")], catalog, rules,
        )
        assert mappings[0].main_category_id == transport.id

    def test_no_match_no_mapping(self, catalog) -> None:
        assert build_keyword_mappings([_code("8888", "Divers")], catalog) == []
