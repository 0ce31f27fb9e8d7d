"""Load ACT_ECON codes from the registry extract.

Input: a delimited file with a header row and ``type,code,label`` columns.
When the header carries none of those names (the registry ships
``TYP_DOM_VAL,COD_DOM_VAL,VAL_DOM_FRAN``), the first three columns are
read as type, code and label. A UTF-8 byte order mark is ignored.
Only rows whose type is the economic-activity family are kept.

Level and parent are derived from the code string alone:

    "0100" -> level 1, no parent
    "0110" -> level 2, parent "0100"   (first two chars + "00")
    "0111" -> level 3, parent "0110"   (first three chars + "0")

Codes are fixed-width strings. Never convert them to int: "0100" and
"100" are different codes.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from pydantic import ValidationError

from src.models.common import CodeLevel
from src.models.taxonomy import EconomicActivityCode, TaxonomyLoadResult

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("type", "code", "label")
DEFAULT_CODE_TYPE = "ACT_ECON"


class TaxonomyLoadError(Exception):
    """The taxonomy source is missing or unusable. Aborts the import."""


def is_valid_code(code: str) -> bool:
    """At least three characters, digits only."""
    return len(code) >= 3 and code.isascii() and code.isdigit()


def derive_level(code: str) -> tuple[CodeLevel, str | None]:
    """Return (level, parent_code) for a zero-padded code.

    '0100' -> (1, None); '0110' -> (2, '0100'); '0111' -> (3, '0110').
    """
    if code.endswith("00"):
        return CodeLevel.MAJOR, None
    if code.endswith("0"):
        return CodeLevel.INTERMEDIATE, f"{code[:2]}00"
    return CodeLevel.SPECIFIC, f"{code[:3]}0"


def _clean(value: str) -> str:
    return value.strip().strip("'\"").strip()


def parse_rows(
    rows: Iterable[Sequence[str]],
    *,
    code_type: str = DEFAULT_CODE_TYPE,
) -> TaxonomyLoadResult:
    """Build the code table from (type, code, label) rows.

    Malformed rows are skipped and counted. Duplicate codes: last row wins.
    Codes whose parent chain does not resolve are removed and reported as
    orphans.
    """
    result = TaxonomyLoadResult()
    codes: dict[str, EconomicActivityCode] = {}

    for row in rows:
        result.rows_read += 1
        if len(row) < 3:
            result.skipped += 1
            continue

        row_type, code, label = (_clean(v) for v in row[:3])
        if row_type != code_type:
            result.ignored += 1
            continue
        if not is_valid_code(code):
            result.skipped += 1
            continue

        level, parent = derive_level(code)
        try:
            entry = EconomicActivityCode(
                code=code, label=label, level=level, parent_code=parent,
            )
        except ValidationError:
            result.skipped += 1
            continue

        if code in codes:
            result.duplicates += 1
        codes[code] = entry

    result.orphans = _drop_orphans(codes)
    result.codes = dict(sorted(codes.items()))

    if result.orphans:
        logger.warning(
            "Dropped %d ACT_ECON codes with no parent in the table: %s",
            len(result.orphans), ", ".join(result.orphans[:20]),
        )
    return result


def _drop_orphans(codes: dict[str, EconomicActivityCode]) -> list[str]:
    """Remove codes whose parent is absent. Mutates ``codes``.

    Level 2 goes first so that level-3 children of a dropped level-2 code
    are caught in the second pass.
    """
    orphans: list[str] = []
    for level in (CodeLevel.INTERMEDIATE, CodeLevel.SPECIFIC):
        for code, entry in sorted(codes.items()):
            if entry.level != level:
                continue
            if entry.parent_code not in codes:
                orphans.append(code)
                del codes[code]
    return orphans


def _column_order(header: Sequence[str], path: Path) -> list[int]:
    """Indexes of the type, code and label columns in ``header``."""
    columns = [_clean(h).lower() for h in header]
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if not missing:
        return [columns.index(c) for c in REQUIRED_COLUMNS]
    if len(missing) == len(REQUIRED_COLUMNS) and len(columns) >= len(REQUIRED_COLUMNS):
        logger.info(
            "No type/code/label header in %s, reading columns by position: %s",
            path, columns[:3],
        )
        return list(range(len(REQUIRED_COLUMNS)))
    raise TaxonomyLoadError(
        f"Taxonomy source {path} is missing columns: {missing}. Found: {columns}"
    )


def load_taxonomy(
    path: str | Path,
    *,
    code_type: str = DEFAULT_CODE_TYPE,
    delimiter: str = ",",
) -> TaxonomyLoadResult:
    """Read the registry extract at ``path`` and build the code table.

    Raises:
        TaxonomyLoadError: file missing/unreadable, empty, or with a header
            naming only some of the type/code/label columns.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f, delimiter=delimiter)
            header = next(reader, None)
            if header is None:
                raise TaxonomyLoadError(f"Taxonomy source is empty: {path}")

            order = _column_order(header, path)

            def _project(rows: Iterable[list[str]]) -> Iterable[list[str]]:
                for row in rows:
                    if not any(cell.strip() for cell in row):
                        continue
                    if len(row) <= max(order):
                        yield []
                        continue
                    yield [row[i] for i in order]

            result = parse_rows(_project(reader), code_type=code_type)
    except OSError as exc:
        raise TaxonomyLoadError(f"Cannot read taxonomy source {path}: {exc}") from exc
    except (csv.Error, UnicodeDecodeError) as exc:
        raise TaxonomyLoadError(f"Malformed taxonomy source {path}: {exc}") from exc

    logger.info(
        "Loaded %d ACT_ECON codes from %s (L1=%d L2=%d L3=%d, skipped=%d, orphans=%d)",
        len(result.codes), path,
        len(result.by_level(CodeLevel.MAJOR)),
        len(result.by_level(CodeLevel.INTERMEDIATE)),
        len(result.by_level(CodeLevel.SPECIFIC)),
        result.skipped, len(result.orphans),
    )
    return result
