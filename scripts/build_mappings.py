"""Generate or load ACT_ECON → main category mappings.

Two steps, so generated mappings can be reviewed before they go live:

    python -m scripts.build_mappings --output data/act-econ-mappings.json
    python -m scripts.build_mappings --apply data/act-econ-mappings.json

Generation reads act_econ_codes and the category catalog from the
database and runs the range and/or keyword heuristics. When both produce
the same (code, category), the higher confidence is kept.

Applying validates every mapping against the catalog (a sub-category must
belong to its main category) and upserts on (code, main, sub).
"""

import argparse
import asyncio
import sys
from collections import Counter
from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.classification.mapping_table import (
    MappingError,
    MappingTable,
    dump_mappings_file,
    load_mappings_file,
)
from src.classification.rules import build_keyword_mappings, build_range_mappings
from src.config.logging import configure_logging
from src.config.settings import get_settings
from src.db.session import create_engine_from_settings, create_session_factory, session_scope
from src.models.mapping import CategoryMapping
from src.repositories.taxonomy import (
    ActivityCodeRepository,
    CategoryMappingRepository,
    CategoryRepository,
)

logger = structlog.get_logger(__name__)

STRATEGIES = ("range", "keywords", "both")


def merge_mappings(*groups: list[CategoryMapping]) -> list[CategoryMapping]:
    """Union of mapping lists; on the same key the higher confidence wins."""
    best: dict[tuple, CategoryMapping] = {}
    for group in groups:
        for mapping in group:
            current = best.get(mapping.key)
            if current is None or mapping.confidence_score > current.confidence_score:
                best[mapping.key] = mapping
    return list(best.values())


async def generate_mappings(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    strategy: str = "both",
) -> list[CategoryMapping]:
    async with session_scope(session_factory) as session:
        codes = await ActivityCodeRepository(session).list_all()
        catalog = await CategoryRepository(session).load_catalog()

    groups: list[list[CategoryMapping]] = []
    if strategy in ("range", "both"):
        groups.append(build_range_mappings(codes, catalog))
    if strategy in ("keywords", "both"):
        groups.append(build_keyword_mappings(codes, catalog))
    mappings = merge_mappings(*groups)
    logger.info(
        "mappings_generated", strategy=strategy, codes=len(codes),
        mappings=len(mappings),
    )
    return mappings


async def apply_mappings(
    session_factory: async_sessionmaker[AsyncSession],
    mappings: list[CategoryMapping],
) -> dict:
    """Validate and upsert. Invalid mappings are reported, not written."""
    rejected: list[str] = []
    async with session_scope(session_factory) as session:
        catalog = await CategoryRepository(session).load_catalog()
        valid: list[CategoryMapping] = []
        for mapping in mappings:
            try:
                valid.append(catalog.validate(mapping))
            except MappingError as exc:
                rejected.append(str(exc))
        upserted = await CategoryMappingRepository(session).upsert_many(valid)

    for reason in rejected:
        logger.warning("mapping_rejected", reason=reason)
    return {"upserted": upserted, "rejected": len(rejected)}


def _print_distribution(mappings: list[CategoryMapping]) -> None:
    table = MappingTable(mappings)
    by_category = Counter(m.main_category_id for m in table)
    print(f"Mappings: {len(table)} covering {len(table.mapped_codes(min_confidence=0.0))} codes")
    for category_id, n in by_category.most_common():
        print(f"  {category_id}  {n} codes")


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_engine_from_settings(settings)
    factory = create_session_factory(engine)
    try:
        if args.apply:
            mappings = load_mappings_file(args.apply)
            outcome = await apply_mappings(factory, mappings)
            print(f"Upserted: {outcome['upserted']}  Rejected: {outcome['rejected']}")
            return 0 if outcome["rejected"] == 0 else 2

        mappings = await generate_mappings(factory, strategy=args.strategy)
        _print_distribution(mappings)
        written = dump_mappings_file(mappings, args.output)
        print(f"Wrote {written} mappings to {args.output} for review.")
        print(f"Apply with: python -m scripts.build_mappings --apply {args.output}")
        return 0
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Build ACT_ECON category mappings")
    parser.add_argument("--strategy", choices=STRATEGIES, default="both")
    parser.add_argument(
        "--output", type=Path, default=Path("data/act-econ-mappings-generated.json"),
        help="Where generated mappings are written for review",
    )
    parser.add_argument(
        "--apply", type=Path, help="Upsert mappings from a reviewed JSON file",
    )
    args = parser.parse_args(argv)

    configure_logging(get_settings())
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
