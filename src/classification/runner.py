"""Batch runner: classify the whole business population page by page.

State machine per pass:

    IDLE -> FETCHING -> PROCESSING(page) -> WRITING(page) -> FETCHING ... -> DONE

Resumability comes from the fetch predicate itself ("has a code, no main
category"): a second invocation picks up whatever the first one left.
Pages are walked by keyset (id > last id) so records that stay
unclassified (NoOp or failed write) never shift the next page.

Failure policy:
- write error or page timeout on a group: logged, counted, its code goes
  to the RetryQueue, the run continues
- fetch error: retried with the batch delay up to max_retries, then the
  pass stops and the report is flagged interrupted
- after the main pass, queued codes are retried in sub-batches
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from uuid import UUID

import structlog

from src.classification.engine import ClassificationEngine, SkipReason
from src.config.settings import Settings
from src.models.business import BusinessRecord
from src.models.common import utc_now
from src.models.mapping import CategoryAssignment
from src.models.run import PageFailure, RunReport, RunState
from src.repositories.base import RecordStore, RecordStoreError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RunnerConfig:
    """Tuning knobs for a batch run."""

    page_size: int = 500
    max_retries: int = 2
    retry_batch_size: int = 20
    batch_delay_seconds: float = 0.1
    page_timeout_seconds: float = 30.0
    max_in_flight: int = 4
    dry_run: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, *, dry_run: bool = False) -> RunnerConfig:
        return cls(
            page_size=settings.CLASSIFY_PAGE_SIZE,
            max_retries=settings.CLASSIFY_MAX_RETRIES,
            retry_batch_size=settings.CLASSIFY_RETRY_BATCH_SIZE,
            batch_delay_seconds=settings.CLASSIFY_BATCH_DELAY_MS / 1000.0,
            page_timeout_seconds=settings.CLASSIFY_PAGE_TIMEOUT_SECONDS,
            max_in_flight=settings.CLASSIFY_MAX_IN_FLIGHT,
            dry_run=dry_run,
        )


class RetryQueue:
    """Codes whose writes failed during a run, in first-failure order."""

    def __init__(self, codes: Iterable[str] = ()) -> None:
        self._codes: dict[str, None] = {}
        self.push(codes)

    def push(self, codes: Iterable[str]) -> None:
        for code in codes:
            self._codes.setdefault(code, None)

    def drain(self) -> list[str]:
        codes = list(self._codes)
        self._codes.clear()
        return codes

    def snapshot(self) -> list[str]:
        return list(self._codes)

    def __len__(self) -> int:
        return len(self._codes)

    def __contains__(self, code: object) -> bool:
        return code in self._codes


def _chunks(items: Sequence[str], size: int) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


class BatchRunner:
    """Drives the ClassificationEngine over the record store."""

    def __init__(
        self,
        store: RecordStore,
        engine: ClassificationEngine,
        config: RunnerConfig | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._config = config or RunnerConfig()
        self.state = RunState.IDLE

    async def run(
        self,
        *,
        page_size: int | None = None,
        max_retries: int | None = None,
        codes: Sequence[str] | None = None,
    ) -> RunReport:
        """Classify every unclassified record with a code.

        Args:
            page_size: records per page (defaults to the config value).
            max_retries: retry rounds for failed codes and failed fetches.
            codes: restrict the run to these ACT_ECON codes.

        Counters accumulate across the main pass and the retry rounds: a
        record whose first write failed and whose retry succeeded is counted
        in both ``errors`` and ``updated``. ``failed_codes`` lists what is
        still failing at the end.
        """
        if page_size is None:
            page_size = self._config.page_size
        if max_retries is None:
            max_retries = self._config.max_retries
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")

        report = RunReport(dry_run=self._config.dry_run)
        queue = RetryQueue()
        log = logger.bind(page_size=page_size, dry_run=self._config.dry_run)
        log.info("classification_run_started", codes=list(codes) if codes else None)

        await self._run_pass(
            report, queue,
            page_size=page_size, max_retries=max_retries, codes=codes,
        )

        while len(queue) and report.retry_rounds < max_retries and not report.interrupted:
            report.retry_rounds += 1
            failed = queue.drain()
            log.info(
                "classification_retry_round",
                round=report.retry_rounds, codes=len(failed),
            )
            chunks = list(_chunks(failed, self._config.retry_batch_size))
            for i, chunk in enumerate(chunks):
                await self._run_pass(
                    report, queue,
                    page_size=page_size, max_retries=max_retries, codes=chunk,
                )
                if report.interrupted:
                    for rest in chunks[i:]:
                        queue.push(rest)
                    break
                await asyncio.sleep(self._config.batch_delay_seconds)

        report.failed_codes = queue.snapshot()
        report.finished_at = utc_now()
        self._transition(RunState.DONE)
        log.info(
            "classification_run_finished",
            processed=report.processed,
            updated=report.updated,
            skipped=report.skipped,
            skip_reasons=report.skip_reasons,
            errors=report.errors,
            pages=report.pages,
            failed_codes=len(report.failed_codes),
            interrupted=report.interrupted,
        )
        return report

    # -----------------------------------------------------------------
    # One pass over the (optionally code-restricted) population
    # -----------------------------------------------------------------

    async def _run_pass(
        self,
        report: RunReport,
        queue: RetryQueue,
        *,
        page_size: int,
        max_retries: int,
        codes: Sequence[str] | None,
    ) -> None:
        if codes is not None and not codes:
            return
        after_id: UUID | None = None
        while True:
            self._transition(RunState.FETCHING)
            records = await self._fetch(
                page_size=page_size, after_id=after_id,
                codes=codes, max_retries=max_retries,
            )
            if records is None:
                report.interrupted = True
                return
            if not records:
                return

            report.pages += 1
            page = report.pages
            after_id = records[-1].id

            self._transition(RunState.PROCESSING)
            groups = self._plan(records, report)

            self._transition(RunState.WRITING)
            await self._write_page(page, groups, report, queue)
            logger.debug(
                "classification_page_done",
                page=page, records=len(records), updated=report.updated,
                errors=report.errors,
            )

            if len(records) < page_size:
                return
            await asyncio.sleep(self._config.batch_delay_seconds)

    async def _fetch(
        self,
        *,
        page_size: int,
        after_id: UUID | None,
        codes: Sequence[str] | None,
        max_retries: int,
    ) -> list[BusinessRecord] | None:
        """Fetch one page; None once every attempt has failed."""
        for attempt in range(max_retries + 1):
            try:
                return await asyncio.wait_for(
                    self._store.fetch_unclassified(
                        limit=page_size, after_id=after_id, codes=codes,
                    ),
                    timeout=self._config.page_timeout_seconds,
                )
            except (RecordStoreError, TimeoutError) as exc:
                logger.warning(
                    "classification_fetch_failed",
                    attempt=attempt + 1, error=str(exc) or type(exc).__name__,
                )
                if attempt < max_retries:
                    await asyncio.sleep(self._config.batch_delay_seconds)
        logger.error("classification_fetch_abandoned", after_id=str(after_id))
        return None

    def _plan(
        self,
        records: Sequence[BusinessRecord],
        report: RunReport,
    ) -> dict[CategoryAssignment, list[UUID]]:
        """Classify a page and group record ids by the assignment to write."""
        groups: dict[CategoryAssignment, list[UUID]] = {}
        for record in records:
            report.processed += 1
            reason = self._engine.skip_reason(record)
            if reason is not None:
                report.record_skip(reason)
                continue
            assignment = self._engine.classify(record)
            if assignment is None:
                report.record_skip(SkipReason.NO_MAPPING)
                continue
            groups.setdefault(assignment, []).append(record.id)
        return groups

    async def _write_page(
        self,
        page: int,
        groups: dict[CategoryAssignment, list[UUID]],
        report: RunReport,
        queue: RetryQueue,
    ) -> None:
        if not groups:
            return
        if self._config.dry_run:
            report.updated += sum(len(ids) for ids in groups.values())
            return

        semaphore = asyncio.Semaphore(self._config.max_in_flight)

        async def _write(assignment: CategoryAssignment, ids: list[UUID]) -> int:
            async with semaphore:
                return await self._store.assign_categories(ids, assignment)

        tasks = {
            asyncio.create_task(_write(assignment, ids)): (assignment, ids)
            for assignment, ids in groups.items()
        }
        _, pending = await asyncio.wait(
            tasks, timeout=self._config.page_timeout_seconds,
        )
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        failed_codes: list[str] = []
        failed_records = 0
        reasons: list[str] = []
        for task, (assignment, ids) in tasks.items():
            if task in pending:
                reason = "timeout"
            else:
                exc = task.exception()
                if exc is None:
                    written = task.result()
                    report.updated += written
                    # Classified by someone else between fetch and write.
                    report.record_skip(SkipReason.ALREADY_CLASSIFIED, len(ids) - written)
                    continue
                if not isinstance(exc, RecordStoreError):
                    raise exc
                reason = str(exc)
            report.errors += len(ids)
            failed_records += len(ids)
            failed_codes.append(assignment.economic_activity_code)
            reasons.append(reason)
            logger.warning(
                "classification_write_failed",
                page=page, code=assignment.economic_activity_code,
                records=len(ids), reason=reason,
            )

        if failed_codes:
            report.failed_pages += 1
            report.failures.append(PageFailure(
                page=page,
                codes=sorted(set(failed_codes)),
                records=failed_records,
                reason="; ".join(sorted(set(reasons))),
            ))
            queue.push(failed_codes)

    def _transition(self, state: RunState) -> None:
        self.state = state
