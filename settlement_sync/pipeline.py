"""Pipeline orchestrator: plan, search, dedupe, then settle message by message."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime

import structlog

from .dedup import deduplicate
from .errors import LedgerStoreError
from .gmail_client import GmailClient
from .ledger import LedgerStore
from .mime import extract_content
from .models import Category, MailboxSettings, RunSummary, SyncError
from .parsing import event_date
from .query import build_queries
from .writer import IngestionWriter, Outcome

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SyncPipeline:
    """One synchronous pass over a date window.

    Messages are handled strictly one at a time in deduplicated order.  A
    failure for one message is recorded in the summary and never aborts
    the rest of the run; a failure while searching aborts the run before
    any message is touched.
    """

    def __init__(
        self,
        mail: GmailClient,
        store: LedgerStore,
        *,
        timezone: str,
        currency: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._mail = mail
        self._timezone = timezone
        self._writer = IngestionWriter(store, timezone=timezone, currency=currency)
        self._clock = clock

    async def run(
        self,
        start: date,
        end: date,
        settings: MailboxSettings,
    ) -> tuple[RunSummary, MailboxSettings]:
        """Sync messages delivered from *start* to *end* (inclusive).

        Returns the run summary and *settings* with ``last_synced_at``
        advanced; persisting the settings is left to the caller.
        """
        structlog.contextvars.bind_contextvars(run_id=uuid.uuid4().hex)
        try:
            queries = build_queries(start, end, self._timezone)
            results: dict[Category, list[str]] = {}
            for category, query in queries.items():
                results[category] = await self._mail.search(query)

            dedup = deduplicate(results)
            summary = RunSummary(scanned=len(dedup.items), deduped=dedup.dropped)
            summary.per_category_totals = {category.value: 0 for category in Category}
            logger.info(
                "sync_run_started",
                start=start.isoformat(),
                end=end.isoformat(),
                scanned=summary.scanned,
                deduped=dedup.dropped,
            )

            for message_id, category in dedup.items:
                summary.per_category_totals[category.value] += 1
                await self._process_message(message_id, category, summary, start, end)

            synced_at = self._clock()
            summary.last_synced_at = synced_at
            logger.info(
                "sync_run_finished",
                scanned=summary.scanned,
                imported=summary.imported,
                skipped=summary.skipped,
                errors=len(summary.errors),
            )
            return summary, settings.model_copy(update={"last_synced_at": synced_at})
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

    async def _process_message(
        self,
        message_id: str,
        category: Category,
        summary: RunSummary,
        start: date,
        end: date,
    ) -> None:
        batch_id: str | None = None
        try:
            message = await self._mail.get(message_id)
            day = event_date(message.delivered_at, self._timezone)
            if day is not None and not start <= day <= end:
                # Provider bounds are a prefilter; the ledger day decides.
                logger.info("message_outside_window", message_id=message_id, event_date=day.isoformat())
                summary.skipped += 1
                return
            content = extract_content(message)
            batch = await self._writer.open_batch(message, content)
            batch_id = batch.id
            result = await self._writer.settle(batch, message, category, content)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            summary.errors.append(SyncError(message_id=message_id, error=error))
            logger.warning(
                "message_sync_failed",
                message_id=message_id,
                category=category.value,
                error=error,
                exc_info=True,
            )
            if batch_id is not None:
                try:
                    await self._writer.fail(batch_id, error)
                except LedgerStoreError:
                    logger.exception("ingest_batch_mark_error_failed", batch_id=batch_id)
            return

        if result.outcome is Outcome.IMPORTED:
            summary.imported += 1
        else:
            summary.skipped += 1
