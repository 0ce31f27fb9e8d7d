"""Import ACT_ECON codes from the registry extract into act_econ_codes.

Reads the delimited source (type,code,label), keeps the ACT_ECON family,
derives level/parent from the code string and upserts on code in batches.

A missing or malformed source aborts the import (exit code 1). A failed
batch is logged and counted; the other batches still go through.

Usage:
    python -m scripts.import_codes                      # TAXONOMY_SOURCE_PATH
    python -m scripts.import_codes --source data/x.csv
    python -m scripts.import_codes --dry-run            # parse and summarize only
"""

import argparse
import asyncio
import sys

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config.logging import configure_logging
from src.config.settings import Settings, get_settings
from src.db.session import create_engine_from_settings, create_session_factory, session_scope
from src.models.common import CodeLevel
from src.models.taxonomy import TaxonomyLoadResult
from src.repositories.taxonomy import ActivityCodeRepository
from src.taxonomy.loader import TaxonomyLoadError, load_taxonomy

logger = structlog.get_logger(__name__)


async def import_codes(
    session_factory: async_sessionmaker[AsyncSession],
    result: TaxonomyLoadResult,
    *,
    batch_size: int = 100,
) -> dict:
    """Upsert the loaded code table. Returns {"inserted": n, "errors": n}."""
    codes = list(result.codes.values())
    inserted = 0
    errors = 0
    total_batches = (len(codes) + batch_size - 1) // batch_size

    for i in range(0, len(codes), batch_size):
        batch = codes[i:i + batch_size]
        batch_no = i // batch_size + 1
        try:
            async with session_scope(session_factory) as session:
                await ActivityCodeRepository(session).upsert_many(batch)
        except SQLAlchemyError as exc:
            errors += len(batch)
            logger.error("code_batch_failed", batch=batch_no, error=str(exc))
            continue
        inserted += len(batch)
        logger.info(
            "code_batch_done", batch=batch_no, total_batches=total_batches,
            inserted=inserted,
        )

    return {"inserted": inserted, "errors": errors}


def _print_summary(result: TaxonomyLoadResult) -> None:
    print(f"ACT_ECON codes parsed: {len(result.codes)}")
    print(f"  Level 1 (major):        {len(result.by_level(CodeLevel.MAJOR))}")
    print(f"  Level 2 (intermediate): {len(result.by_level(CodeLevel.INTERMEDIATE))}")
    print(f"  Level 3 (specific):     {len(result.by_level(CodeLevel.SPECIFIC))}")
    print(f"  Skipped (malformed):    {result.skipped}")
    print(f"  Other code families:    {result.ignored}")
    print(f"  Duplicates:             {result.duplicates}")
    print(f"  Orphans dropped:        {len(result.orphans)}")
    for code in result.by_level(CodeLevel.SPECIFIC)[:10]:
        print(f"    {code.code} -> parent {code.parent_code} - {code.label}")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    source = args.source or settings.TAXONOMY_SOURCE_PATH
    try:
        result = load_taxonomy(source, code_type=settings.TAXONOMY_CODE_TYPE)
    except TaxonomyLoadError as exc:
        logger.error("taxonomy_load_failed", error=str(exc))
        print(f"Import aborted: {exc}")
        return 1

    _print_summary(result)
    if args.dry_run:
        return 0

    engine = create_engine_from_settings(settings)
    try:
        outcome = await import_codes(
            create_session_factory(engine), result,
            batch_size=settings.TAXONOMY_IMPORT_BATCH_SIZE,
        )
    finally:
        await engine.dispose()

    print(f"Codes upserted: {outcome['inserted']}")
    print(f"Errors:         {outcome['errors']}")
    return 0 if outcome["errors"] == 0 else 2


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import ACT_ECON codes")
    parser.add_argument("--source", help="Path to the registry extract (CSV)")
    parser.add_argument(
        "--dry-run", action="store_true", help="Parse and summarize only",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
