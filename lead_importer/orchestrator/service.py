"""Bounded-concurrency dispatch of cleaned rows into a client store."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from ..config import ImportSettings
from ..ingestion.cleaning import clean_rows
from ..ingestion.loaders import Source, read_numbered_rows
from ..merge import collapse_duplicate_phones
from ..models import Actor, ClientRecord, DispatchReport, ImportSummary, UpsertOutcome
from ..store import ClientStore, upsert_client

LOGGER = logging.getLogger(__name__)

UpsertFunction = Callable[[ClientStore, ClientRecord, Actor], UpsertOutcome]


class BatchDispatchError(RuntimeError):
    """Raised after a batch completes when some upserts failed and the caller asked to fail."""

    def __init__(self, report: DispatchReport) -> None:
        super().__init__(f"{len(report.failed)} of {len(report.outcomes)} client upserts failed")
        self.report = report


class UpsertDispatcher:
    """Runs upserts for a batch of records with at most ``max_concurrency`` in flight.

    Every record gets an outcome: a failing or timed-out upsert is recorded
    and the rest of the batch carries on. Calls run on their own pool of
    ``max_concurrency`` threads, so an abandoned (timed-out) call keeps its
    slot until it returns and the store never sees more than
    ``max_concurrency`` simultaneous calls. The timeout starts when a call
    begins, so time spent queued behind an abandoned call is not counted.
    A timed-out call is reported as failed but may still commit its write
    when it eventually returns; uploading the sheet again is safe because
    upserts are keyed by phone.
    """

    def __init__(
        self,
        store: ClientStore,
        *,
        max_concurrency: int = 3,
        call_timeout: Optional[float] = 30.0,
        raise_on_error: bool = False,
        upsert: UpsertFunction = upsert_client,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._store = store
        self._max_concurrency = max_concurrency
        self._call_timeout = call_timeout
        self._raise_on_error = raise_on_error
        self._upsert = upsert

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    def dispatch(self, records: Iterable[ClientRecord], actor: Actor) -> DispatchReport:
        """Persist every record and return the outcomes in input order."""

        pending = list(records)
        if not pending:
            return DispatchReport()

        calls = ThreadPoolExecutor(max_workers=self._max_concurrency, thread_name_prefix="upsert-call")
        try:
            with ThreadPoolExecutor(
                max_workers=min(self._max_concurrency, len(pending)),
                thread_name_prefix="upsert",
            ) as executor:
                futures = [executor.submit(self._execute, calls, record, actor) for record in pending]
                outcomes: List[UpsertOutcome] = [future.result() for future in futures]
        finally:
            calls.shutdown(wait=False, cancel_futures=True)

        report = DispatchReport(outcomes=outcomes)
        if report.failed:
            LOGGER.error("%s of %s client upserts failed", len(report.failed), len(outcomes))
            if self._raise_on_error:
                raise BatchDispatchError(report)
        return report

    def _execute(self, calls: ThreadPoolExecutor, record: ClientRecord, actor: Actor) -> UpsertOutcome:
        LOGGER.debug("Upserting client %s from row %s", record.phone, record.row_number)
        started = threading.Event()

        def run() -> UpsertOutcome:
            started.set()
            return self._upsert(self._store, record, actor)

        call = calls.submit(run)
        # The timeout covers the call itself, not the wait for a free slot.
        started.wait()
        try:
            return call.result(timeout=self._call_timeout)
        except FuturesTimeoutError:
            LOGGER.error(
                "Upsert of client %s (row %s) timed out after %ss",
                record.phone,
                record.row_number,
                self._call_timeout,
            )
            return UpsertOutcome(
                phone=record.phone,
                row_number=record.row_number,
                error=f"Timed out after {self._call_timeout} seconds",
            )
        except Exception as exc:
            LOGGER.exception("Upsert of client %s (row %s) failed", record.phone, record.row_number)
            return UpsertOutcome(phone=record.phone, row_number=record.row_number, error=str(exc) or type(exc).__name__)


def import_rows(
    rows: Iterable[Mapping[str, Any]],
    actor: Actor,
    store: ClientStore,
    *,
    settings: Optional[ImportSettings] = None,
    row_numbers: Optional[Sequence[int]] = None,
) -> ImportSummary:
    """Clean already-decoded rows and persist the usable ones."""

    settings = settings or ImportSettings()
    result = clean_rows(rows, policy=settings.prospect_policy, row_numbers=row_numbers)

    unique, dropped = collapse_duplicate_phones(result.cleaned)
    for record in dropped:
        LOGGER.info("Row %s superseded by a later row with phone %s", record.row_number, record.phone)

    dispatcher = UpsertDispatcher(
        store,
        max_concurrency=settings.max_concurrency,
        call_timeout=settings.call_timeout,
        raise_on_error=settings.raise_on_error,
    )
    report = dispatcher.dispatch(unique, actor)

    summary = ImportSummary(result=result, report=report, duplicates=len(dropped))
    LOGGER.info(
        "%s (%s row errors, %s duplicates, %s failures)",
        summary.message,
        len(summary.errors),
        summary.duplicates,
        len(summary.failures),
    )
    return summary


def import_clients(
    source: Source,
    actor: Actor,
    store: ClientStore,
    *,
    settings: Optional[ImportSettings] = None,
    filename: Optional[str] = None,
) -> ImportSummary:
    """Import the first worksheet of an uploaded spreadsheet into ``store``."""

    numbered = read_numbered_rows(source, filename=filename)
    LOGGER.info("Read %s rows for upload by %s", len(numbered), actor.actor_id)
    return import_rows(
        [row for _, row in numbered],
        actor,
        store,
        settings=settings,
        row_numbers=[number for number, _ in numbered],
    )
