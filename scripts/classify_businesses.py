"""Assign main/sub categories to businesses from their ACT_ECON code.

Only businesses with a code and no main category are touched; existing
(manual) categories are never overwritten. Safe to re-run: each run picks
up what the previous one left behind.

Usage:
    python -m scripts.classify_businesses
    python -m scripts.classify_businesses --page-size 200 --max-retries 3
    python -m scripts.classify_businesses --codes 0111 4573
    python -m scripts.classify_businesses --failed-codes-out failed.json
    python -m scripts.classify_businesses --codes-file failed.json
    python -m scripts.classify_businesses --dry-run

Exit code 0 when nothing is left to retry, 2 otherwise.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.classification.engine import ClassificationEngine
from src.classification.runner import BatchRunner, RunnerConfig
from src.config.logging import configure_logging
from src.config.settings import Settings, get_settings
from src.db.session import create_engine_from_settings, create_session_factory, session_scope
from src.models.run import RunReport
from src.repositories.businesses import SqlRecordStore
from src.repositories.taxonomy import CategoryMappingRepository

logger = structlog.get_logger(__name__)


async def build_engine(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> ClassificationEngine:
    """Load the mapping table and wrap it with the configured threshold."""
    async with session_scope(session_factory) as session:
        table = await CategoryMappingRepository(session).load_table()
    logger.info(
        "mapping_table_loaded", mappings=len(table),
        excluded_codes=sorted(settings.EXCLUDED_ACTIVITY_CODES),
    )
    return ClassificationEngine(
        table,
        min_confidence=settings.MIN_MAPPING_CONFIDENCE,
        excluded_codes=settings.EXCLUDED_ACTIVITY_CODES,
    )


async def run_classification(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    *,
    page_size: int | None = None,
    max_retries: int | None = None,
    codes: list[str] | None = None,
    dry_run: bool = False,
) -> RunReport:
    engine = await build_engine(session_factory, settings)
    runner = BatchRunner(
        SqlRecordStore(session_factory),
        engine,
        RunnerConfig.from_settings(settings, dry_run=dry_run),
    )
    return await runner.run(page_size=page_size, max_retries=max_retries, codes=codes)


def read_codes_file(path: Path) -> list[str]:
    """Codes from a JSON list, or from a report written by --failed-codes-out."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("failed_codes", [])
    return [str(c) for c in data]


def write_failed_codes(report: RunReport, path: Path) -> None:
    payload = {
        "failed_codes": report.failed_codes,
        "finished_at": report.finished_at.isoformat() if report.finished_at else None,
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _print_report(report: RunReport) -> None:
    mode = " (dry run)" if report.dry_run else ""
    print(f"Classification finished{mode}")
    print(f"  Processed:     {report.processed:,}")
    print(f"  Updated:       {report.updated:,}")
    print(f"  Skipped:       {report.skipped:,}")
    for reason, count in sorted(report.skip_reasons.items()):
        print(f"    {reason.lower()}: {count:,}")
    print(f"  Errors:        {report.errors:,}")
    print(f"  Pages:         {report.pages:,} ({report.failed_pages} with failures)")
    print(f"  Retry rounds:  {report.retry_rounds}")
    if report.interrupted:
        print("  Interrupted: record store unreachable, re-run to continue.")
    if report.failed_codes:
        print(f"  Codes still failing: {', '.join(report.failed_codes)}")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    codes: list[str] | None = None
    if args.codes_file:
        codes = read_codes_file(args.codes_file)
    if args.codes:
        codes = (codes or []) + args.codes

    engine = create_engine_from_settings(settings)
    try:
        report = await run_classification(
            create_session_factory(engine),
            settings,
            page_size=args.page_size,
            max_retries=args.max_retries,
            codes=codes,
            dry_run=args.dry_run,
        )
    finally:
        await engine.dispose()

    _print_report(report)
    if args.failed_codes_out:
        write_failed_codes(report, args.failed_codes_out)
    return 0 if report.succeeded else 2


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Classify businesses by ACT_ECON code")
    parser.add_argument("--page-size", type=int, help="Records per page")
    parser.add_argument("--max-retries", type=int, help="Retry rounds for failed codes")
    parser.add_argument("--codes", nargs="+", help="Only these ACT_ECON codes")
    parser.add_argument("--codes-file", type=Path, help="JSON file with codes to (re)run")
    parser.add_argument(
        "--failed-codes-out", type=Path,
        help="Write codes still failing to this JSON file",
    )
    parser.add_argument("--dry-run", action="store_true", help="Classify without writing")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
