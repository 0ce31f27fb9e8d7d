"""Mapping table: candidate category mappings per ACT_ECON code.

Key operations:
- upsert: add a mapping or update the confidence of an existing key
- candidates: all mappings for a code, highest confidence first
- best: highest-confidence mapping at or above a threshold
- mapped_codes: codes with at least one selectable mapping

Upsert key is (code, main_category_id, sub_category_id). A code may have
several candidates; ties on confidence keep insertion order.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from uuid import UUID

from src.models.mapping import CategoryMapping, MainCategory, SubCategory


class MappingError(ValueError):
    """Mapping inconsistent with the category catalog."""


class MappingTable:
    """In-memory mapping table, indexed by code."""

    def __init__(self, mappings: Iterable[CategoryMapping] = ()) -> None:
        self._by_code: dict[str, list[CategoryMapping]] = {}
        for mapping in mappings:
            self.upsert(mapping)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_code.values())

    def __iter__(self):
        for entries in self._by_code.values():
            yield from entries

    def upsert(self, mapping: CategoryMapping) -> CategoryMapping:
        """Insert, or replace the confidence/notes of the same key."""
        entries = self._by_code.setdefault(mapping.economic_activity_code, [])
        for i, existing in enumerate(entries):
            if existing.key == mapping.key:
                updated = existing.model_copy(
                    update={
                        "confidence_score": mapping.confidence_score,
                        "mapping_notes": mapping.mapping_notes or existing.mapping_notes,
                        "mapped_by": mapping.mapped_by,
                    },
                )
                entries[i] = updated
                return updated
        entries.append(mapping)
        return mapping

    def candidates(self, code: str) -> list[CategoryMapping]:
        """Mappings for ``code``, sorted by confidence descending (stable)."""
        return sorted(
            self._by_code.get(code, []),
            key=lambda m: m.confidence_score,
            reverse=True,
        )

    def best(self, code: str, *, min_confidence: float = 0.5) -> CategoryMapping | None:
        """Highest-confidence candidate, or None if it is below threshold."""
        ranked = self.candidates(code)
        if ranked and ranked[0].confidence_score >= min_confidence:
            return ranked[0]
        return None

    def mapped_codes(self, *, min_confidence: float = 0.5) -> set[str]:
        return {
            code for code, entries in self._by_code.items()
            if any(m.confidence_score >= min_confidence for m in entries)
        }


class CategoryCatalog:
    """Main and sub categories, with slug lookup and membership checks."""

    def __init__(
        self,
        main_categories: Iterable[MainCategory],
        sub_categories: Iterable[SubCategory] = (),
    ) -> None:
        self._main_by_id: dict[UUID, MainCategory] = {c.id: c for c in main_categories}
        self._main_by_slug: dict[str, MainCategory] = {
            c.slug: c for c in self._main_by_id.values()
        }
        self._sub_by_id: dict[UUID, SubCategory] = {c.id: c for c in sub_categories}

    def main_by_slug(self, slug: str) -> MainCategory:
        try:
            return self._main_by_slug[slug]
        except KeyError:
            raise MappingError(
                f"Unknown main category slug: '{slug}'. "
                f"Known: {sorted(self._main_by_slug)}"
            ) from None

    def has_slug(self, slug: str) -> bool:
        return slug in self._main_by_slug

    def validate(self, mapping: CategoryMapping) -> CategoryMapping:
        """Raise MappingError unless main exists and sub belongs to it."""
        if mapping.main_category_id not in self._main_by_id:
            raise MappingError(
                f"Code {mapping.economic_activity_code}: unknown main category "
                f"{mapping.main_category_id}"
            )
        if mapping.sub_category_id is None:
            return mapping
        sub = self._sub_by_id.get(mapping.sub_category_id)
        if sub is None:
            raise MappingError(
                f"Code {mapping.economic_activity_code}: unknown sub category "
                f"{mapping.sub_category_id}"
            )
        if sub.main_category_id != mapping.main_category_id:
            raise MappingError(
                f"Code {mapping.economic_activity_code}: sub category '{sub.slug}' "
                f"does not belong to main category {mapping.main_category_id}"
            )
        return mapping


# ---------------------------------------------------------------------------
# JSON review files
# ---------------------------------------------------------------------------


def dump_mappings_file(mappings: Iterable[CategoryMapping], path: str | Path) -> int:
    """Write mappings to a JSON file for review. Returns the count written."""
    payload = [m.model_dump(mode="json") for m in mappings]
    Path(path).write_text(
        json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8",
    )
    return len(payload)


def load_mappings_file(path: str | Path) -> list[CategoryMapping]:
    """Read mappings previously written by dump_mappings_file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return [CategoryMapping.model_validate(item) for item in data]
