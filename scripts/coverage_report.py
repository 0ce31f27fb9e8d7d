"""Print classification coverage and the most frequent unmapped codes.

Usage:
    python -m scripts.coverage_report
    python -m scripts.coverage_report --top 100
"""

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scripts.classify_businesses import build_engine
from src.classification.coverage import CoverageReporter
from src.config.logging import configure_logging
from src.config.settings import Settings, get_settings
from src.db.session import create_engine_from_settings, create_session_factory
from src.models.run import CoverageReport
from src.repositories.businesses import SqlRecordStore


async def compute_coverage(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    *,
    top: int | None = 50,
) -> CoverageReport:
    engine = await build_engine(session_factory, settings)
    reporter = CoverageReporter(SqlRecordStore(session_factory), engine)
    return await reporter.report(top=top)


def _print_report(report: CoverageReport) -> None:
    print(f"Total businesses:        {report.total:,}")
    print(f"With ACT_ECON code:      {report.with_code:,}")
    print(f"  with a category:       {report.with_category:,} ({report.coverage_ratio:.1%})")
    print(f"Records on unmapped codes: {report.unmapped_records:,}")
    print()
    print("By main category:")
    for category_id, count in report.by_category.items():
        print(f"  {category_id}  {count:,}")
    print()
    print(f"Top {len(report.unmapped_codes)} unmapped codes:")
    for i, item in enumerate(report.unmapped_codes, start=1):
        print(f"  {i:>3}. {item.code}: {item.count:,} businesses")


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    engine = create_engine_from_settings(settings)
    try:
        report = await compute_coverage(
            create_session_factory(engine), settings, top=args.top,
        )
    finally:
        await engine.dispose()
    _print_report(report)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="ACT_ECON classification coverage")
    parser.add_argument("--top", type=int, default=50, help="Unmapped codes to list")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    return asyncio.run(_run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
