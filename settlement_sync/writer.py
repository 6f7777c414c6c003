"""Ingestion ledger writer: the per-message persistence state machine.

An ingestion batch moves ``pending -> parsed | skipped | error``.
``parsed`` and ``skipped`` are terminal; a message whose batch is already
terminal is never re-parsed.  The settlement event's unique constraint in
the store is the real idempotence guarantee: if batch bookkeeping is lost
and a message is parsed again, the duplicate insert is rejected and the
batch is closed as ``skipped``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from .classifier import classify
from .errors import DuplicateSettlementEvent
from .ledger import LedgerStore, source_ref
from .mime import ExtractedContent
from .models import Category, IngestBatch, IngestStatus, MailMessage, RawPayload, SettlementEvent
from .parsing import event_date, parse_amount

logger = structlog.get_logger()

SKIP_ALREADY_PROCESSED = "already processed"
SKIP_NO_AMOUNT = "unable to parse amount"
SKIP_NO_TIMESTAMP = "missing delivery timestamp"
SKIP_DUPLICATE = "duplicate settlement event"


class Outcome(str, Enum):
    IMPORTED = "imported"
    SKIPPED = "skipped"


@dataclass
class WriteResult:
    outcome: Outcome
    ingest_batch_id: str
    reason: str | None = None
    settlement_batch_id: str | None = None


class IngestionWriter:
    """Runs the ledger side of one message: create-or-get, parse, persist, mark."""

    def __init__(self, store: LedgerStore, *, timezone: str, currency: str) -> None:
        self._store = store
        self._timezone = timezone
        self._currency = currency

    async def open_batch(self, message: MailMessage, content: ExtractedContent) -> IngestBatch:
        """Create (or fetch) the ingestion batch row for *message*."""
        return await self._store.create_or_get_ingest_batch(
            message_id=message.id,
            thread_id=message.thread_id,
            subject=message.header("Subject"),
            sender=message.header("From"),
            received_at=message.delivered_at,
            headers=message.header_map(),
            attachment_names=content.attachment_names,
        )

    async def settle(
        self,
        batch: IngestBatch,
        message: MailMessage,
        category: Category,
        content: ExtractedContent,
    ) -> WriteResult:
        """Parse and persist *message* into *batch*.

        Store errors other than a duplicate event propagate; the caller is
        responsible for marking the batch ``error``.
        """
        log = logger.bind(message_id=message.id, category=category.value, batch_id=batch.id)

        if batch.status.is_terminal:
            log.debug("ingest_batch_already_terminal", status=batch.status.value)
            return WriteResult(Outcome.SKIPPED, batch.id, reason=SKIP_ALREADY_PROCESSED)

        text = content.parse_text()
        amount = parse_amount(text, self._currency)
        if amount is None:
            return await self._skip(batch, SKIP_NO_AMOUNT, log)

        day = event_date(message.delivered_at, self._timezone)
        if day is None:
            return await self._skip(batch, SKIP_NO_TIMESTAMP, log)

        subject = message.header("Subject")
        raw = RawPayload(
            gmail_message_id=message.id,
            subject=subject,
            body_text=content.body_text,
            body_html=content.body_html,
            category=category,
            attachment_names=content.attachment_names,
            headers=message.header_map(),
        )
        settlement_batch_id = await self._store.create_settlement_batch(
            message_id=message.id,
            received_at=message.delivered_at,
            raw=raw,
        )

        classification = classify(category, text)
        event = SettlementEvent(
            batch_id=settlement_batch_id,
            platform=classification.platform,
            event_type=classification.event_type,
            event_date=day,
            amount=amount,
            currency=self._currency,
            reference_no=source_ref(message.id),
            party=classification.party,
            payload={
                "category": category.value,
                "subject": subject,
                "body": content.archival_body(category),
                "body_text": content.body_text,
                "body_html": content.body_html,
            },
        )

        try:
            await self._store.insert_settlement_event(event)
        except DuplicateSettlementEvent:
            await self._store.mark_ingest_batch(
                batch.id,
                IngestStatus.SKIPPED,
                error=SKIP_DUPLICATE,
                settlement_batch_id=settlement_batch_id,
            )
            log.info("settlement_event_duplicate", settlement_batch_id=settlement_batch_id)
            return WriteResult(
                Outcome.SKIPPED,
                batch.id,
                reason=SKIP_DUPLICATE,
                settlement_batch_id=settlement_batch_id,
            )

        await self._store.mark_ingest_batch(
            batch.id,
            IngestStatus.PARSED,
            parsed_event_count=1,
            settlement_batch_id=settlement_batch_id,
        )
        log.info(
            "settlement_event_imported",
            event_type=event.event_type.value,
            event_date=day.isoformat(),
            amount=str(amount),
        )
        return WriteResult(Outcome.IMPORTED, batch.id, settlement_batch_id=settlement_batch_id)

    async def fail(self, batch_id: str, error: str) -> None:
        """Mark a batch ``error`` so a later run picks the message up again."""
        await self._store.mark_ingest_batch(batch_id, IngestStatus.ERROR, error=error)

    async def _skip(self, batch: IngestBatch, reason: str, log: structlog.stdlib.BoundLogger) -> WriteResult:
        await self._store.mark_ingest_batch(batch.id, IngestStatus.SKIPPED, error=reason)
        log.info("ingest_batch_skipped", reason=reason)
        return WriteResult(Outcome.SKIPPED, batch.id, reason=reason)
