"""SettlementSyncService: configuration checks, mailbox settings, run timeout."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date

import structlog

from .config import SyncConfig
from .errors import ConfigurationError, LedgerStoreError, MailboxNotConnectedError
from .gmail_client import GmailClient
from .ledger import LedgerStore
from .models import MailboxSettings, RunSummary, SyncError
from .pipeline import SyncPipeline

logger = structlog.get_logger()


class SettlementSyncService:
    """Entry point shared by the HTTP API and the one-shot CLI.

    Clients are created per call through the factories so each run gets
    fresh connections; tests inject fakes through the same seam.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        mail_factory: Callable[[], GmailClient] | None = None,
        store_factory: Callable[[], LedgerStore] | None = None,
    ) -> None:
        self._config = config
        self._mail_factory = mail_factory or (lambda: GmailClient(config.gmail, config.retry))
        self._store_factory = store_factory or (lambda: LedgerStore(config.ledger))

    def check_configuration(self) -> None:
        """Raise :class:`ConfigurationError` listing every missing setting."""
        missing = self._config.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Missing configuration: {', '.join(missing)}",
                missing=missing,
            )

    async def sync(self, start: date, end: date) -> RunSummary:
        """Run one sync over ``[start, end]`` and persist ``last_synced_at``."""
        self.check_configuration()

        async with self._store_factory() as store:
            settings = await store.get_mailbox_settings()
            if not settings.connected:
                raise MailboxNotConnectedError("Mailbox is not connected in company settings")

            async with self._mail_factory() as mail:
                pipeline = SyncPipeline(
                    mail,
                    store,
                    timezone=self._config.timezone,
                    currency=self._config.currency,
                )
                async with asyncio.timeout(self._config.run_timeout_seconds):
                    summary, updated = await pipeline.run(start, end, settings)

            try:
                await store.update_mailbox_settings(updated)
            except LedgerStoreError as exc:
                logger.warning("mailbox_settings_update_failed", error=str(exc))
                summary.errors.append(SyncError(message_id="settings", error=str(exc)))

        return summary

    async def connect(self) -> MailboxSettings:
        """Mark the configured mailbox as connected, keeping ``last_synced_at``."""
        self.check_configuration()

        async with self._store_factory() as store:
            current = await store.get_mailbox_settings()
            updated = current.model_copy(
                update={"mailbox": self._config.gmail.user, "connected": True},
            )
            await store.update_mailbox_settings(updated)

        logger.info("mailbox_connected", mailbox=updated.mailbox)
        return updated
