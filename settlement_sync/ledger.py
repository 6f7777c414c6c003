"""Async client for the ledger store's remote procedures.

The store exposes PostgREST-style RPC endpoints
(``POST {url}/rest/v1/rpc/{procedure}``).  Every call is scoped to the
configured organization and authenticated with the service-role key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog

from .config import LedgerConfig
from .errors import DuplicateSettlementEvent, LedgerStoreError
from .models import IngestBatch, IngestStatus, MailboxSettings, RawPayload, SettlementEvent

logger = structlog.get_logger()

SETTLEMENT_SOURCE = "mail-sync"

# Postgres SQLSTATE for unique_violation, passed through by PostgREST.
UNIQUE_VIOLATION = "23505"


def source_ref(message_id: str) -> str:
    return f"gmail:{message_id}"


class LedgerStore:
    """Typed wrapper over the ledger store procedures used by the sync."""

    SETTINGS_GET = "erp_company_settings_get"
    SETTINGS_UPDATE = "erp_company_settings_update_gmail"
    INGEST_BATCH_CREATE_OR_GET = "erp_email_ingest_batch_create_or_get"
    INGEST_BATCH_MARK = "erp_email_ingest_batch_mark"
    SETTLEMENT_BATCH_CREATE = "erp_settlement_batch_create"
    SETTLEMENT_EVENT_INSERT = "erp_settlement_event_insert"

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        key = self._config.service_key.get_secret_value()
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/") + "/rest/v1/rpc/",
            timeout=httpx.Timeout(self._config.timeout_seconds),
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            },
        )
        logger.info("ledger_store_started", org_id=self._config.org_id)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("ledger_store_stopped")

    async def __aenter__(self) -> LedgerStore:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Mailbox settings
    # ------------------------------------------------------------------

    async def get_mailbox_settings(self) -> MailboxSettings:
        row = _first_row(await self._rpc(self.SETTINGS_GET, {}), self.SETTINGS_GET)
        return MailboxSettings(
            mailbox=row.get("gmail_user"),
            connected=bool(row.get("gmail_connected")),
            last_synced_at=row.get("gmail_last_synced_at"),
        )

    async def update_mailbox_settings(self, settings: MailboxSettings) -> None:
        await self._rpc(
            self.SETTINGS_UPDATE,
            {
                "p_gmail_user": settings.mailbox,
                "p_connected": settings.connected,
                "p_last_synced_at": _iso(settings.last_synced_at),
            },
        )

    # ------------------------------------------------------------------
    # Ingestion batches
    # ------------------------------------------------------------------

    async def create_or_get_ingest_batch(
        self,
        *,
        message_id: str,
        thread_id: str | None,
        subject: str | None,
        sender: str | None,
        received_at: datetime | None,
        headers: dict[str, str],
        attachment_names: list[str],
    ) -> IngestBatch:
        """Create the batch for *message_id*, or return the existing one."""
        data = await self._rpc(
            self.INGEST_BATCH_CREATE_OR_GET,
            {
                "p_gmail_message_id": message_id,
                "p_thread_id": thread_id,
                "p_subject": subject,
                "p_from": sender,
                "p_received_at": _iso(received_at),
                "p_headers": headers,
                "p_attachment_names": attachment_names,
            },
        )
        return IngestBatch.model_validate(_first_row(data, self.INGEST_BATCH_CREATE_OR_GET))

    async def mark_ingest_batch(
        self,
        batch_id: str,
        status: IngestStatus,
        *,
        error: str | None = None,
        parsed_event_count: int = 0,
        settlement_batch_id: str | None = None,
    ) -> None:
        await self._rpc(
            self.INGEST_BATCH_MARK,
            {
                "p_id": batch_id,
                "p_status": status.value,
                "p_error": error,
                "p_parsed_event_count": parsed_event_count,
                "p_settlement_batch_id": settlement_batch_id,
            },
        )
        logger.debug("ingest_batch_marked", batch_id=batch_id, status=status.value)

    # ------------------------------------------------------------------
    # Settlement batches / events
    # ------------------------------------------------------------------

    async def create_settlement_batch(
        self,
        *,
        message_id: str,
        received_at: datetime | None,
        raw: RawPayload,
    ) -> str:
        data = await self._rpc(
            self.SETTLEMENT_BATCH_CREATE,
            {
                "p_source": SETTLEMENT_SOURCE,
                "p_source_ref": source_ref(message_id),
                "p_received_at": _iso(received_at),
                "p_raw": raw.model_dump(mode="json"),
            },
        )
        if isinstance(data, (list, dict)):
            data = _first_row(data, self.SETTLEMENT_BATCH_CREATE).get("id")
        if not data:
            raise LedgerStoreError(
                "settlement batch create returned no id",
                procedure=self.SETTLEMENT_BATCH_CREATE,
            )
        return str(data)

    async def insert_settlement_event(self, event: SettlementEvent) -> None:
        """Insert *event*; raises :class:`DuplicateSettlementEvent` if it exists."""
        body = event.model_dump(mode="json")
        await self._rpc(
            self.SETTLEMENT_EVENT_INSERT,
            {f"p_{key}": value for key, value in body.items()},
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _rpc(self, procedure: str, params: dict[str, Any]) -> Any:
        if self._client is None:
            raise AssertionError("Client not started")

        payload = {"p_org_id": self._config.org_id, **params}
        try:
            response = await self._client.post(procedure, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerStoreError(f"{procedure} failed: {exc}", procedure=procedure) from exc

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        code, message = _error_details(response)
        if code == UNIQUE_VIOLATION and procedure == self.SETTLEMENT_EVENT_INSERT:
            raise DuplicateSettlementEvent(message, code=code, procedure=procedure)
        raise LedgerStoreError(f"{procedure} failed: {message}", code=code, procedure=procedure)


def _first_row(data: Any, procedure: str) -> dict[str, Any]:
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        raise LedgerStoreError(f"{procedure} returned no row", procedure=procedure)
    return data


def _error_details(response: httpx.Response) -> tuple[str | None, str]:
    try:
        body = response.json()
    except ValueError:
        return None, response.text or f"HTTP {response.status_code}"
    if not isinstance(body, dict):
        return None, f"HTTP {response.status_code}"
    return body.get("code"), body.get("message") or f"HTTP {response.status_code}"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
