"""Tests for settlement_sync.service."""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest

from settlement_sync.config import GmailConfig, LedgerConfig, SyncConfig
from settlement_sync.errors import ConfigurationError, LedgerStoreError, MailboxNotConnectedError
from settlement_sync.models import Category, MailboxSettings
from settlement_sync.service import SettlementSyncService

from tests.conftest import ist
from tests.fakes import FakeLedger, FakeMailbox, make_message

START = date(2025, 6, 1)
END = date(2025, 6, 1)


class _SlowMailbox(FakeMailbox):
    async def search(self, query: str) -> list[str]:
        await asyncio.sleep(5)
        return []


def _service(config: SyncConfig, mailbox: FakeMailbox, ledger: FakeLedger) -> SettlementSyncService:
    return SettlementSyncService(config, mail_factory=lambda: mailbox, store_factory=lambda: ledger)


class TestConfiguration:
    def test_complete_configuration_passes(self, sync_config, mailbox, ledger):
        _service(sync_config, mailbox, ledger).check_configuration()

    @pytest.mark.asyncio
    async def test_missing_settings_abort_before_any_call(self, mailbox, ledger):
        config = SyncConfig(
            gmail=GmailConfig(client_id="id", user="finance@example.com"),
            ledger=LedgerConfig(url="https://ledger.test"),
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await _service(config, mailbox, ledger).sync(START, END)

        assert exc_info.value.missing == [
            "GMAIL_CLIENT_SECRET",
            "GMAIL_REDIRECT_URI",
            "GMAIL_REFRESH_TOKEN",
            "LEDGER_SERVICE_KEY",
            "LEDGER_ORG_ID",
        ]
        assert mailbox.searches == []
        assert ledger.settings_updates == []


class TestSync:
    @pytest.mark.asyncio
    async def test_persists_last_synced_at(self, sync_config, mailbox, ledger):
        mailbox.add(
            make_message("amz-1", text="INR 100.00", delivered_at=ist(2025, 6, 1)),
            Category.AMAZON_SETTLEMENT,
        )

        summary = await _service(sync_config, mailbox, ledger).sync(START, END)

        assert summary.imported == 1
        assert summary.success
        assert len(ledger.settings_updates) == 1
        persisted = ledger.settings_updates[0]
        assert persisted.connected is True
        assert persisted.mailbox == "finance@example.com"
        assert persisted.last_synced_at == summary.last_synced_at

    @pytest.mark.asyncio
    async def test_not_connected(self, sync_config, mailbox):
        ledger = FakeLedger(settings=MailboxSettings(connected=False))

        with pytest.raises(MailboxNotConnectedError):
            await _service(sync_config, mailbox, ledger).sync(START, END)

        assert mailbox.searches == []

    @pytest.mark.asyncio
    async def test_settings_update_failure_is_reported(self, sync_config, mailbox, ledger):
        ledger.fail_settings_update = LedgerStoreError("erp_company_settings_update_gmail failed: timeout")

        summary = await _service(sync_config, mailbox, ledger).sync(START, END)

        assert not summary.success
        assert [(e.message_id, e.error) for e in summary.errors] == [
            ("settings", "erp_company_settings_update_gmail failed: timeout")
        ]

    @pytest.mark.asyncio
    async def test_run_timeout(self, sync_config, ledger):
        config = sync_config.model_copy(update={"run_timeout_seconds": 0.05})

        with pytest.raises(TimeoutError):
            await _service(config, _SlowMailbox(), ledger).sync(START, END)

        assert ledger.settings_updates == []


class TestConnect:
    @pytest.mark.asyncio
    async def test_marks_mailbox_connected(self, sync_config, mailbox):
        synced = datetime(2025, 5, 30, tzinfo=UTC)
        ledger = FakeLedger(settings=MailboxSettings(mailbox=None, connected=False, last_synced_at=synced))

        settings = await _service(sync_config, mailbox, ledger).connect()

        assert settings.mailbox == "finance@example.com"
        assert settings.connected is True
        assert settings.last_synced_at == synced
        assert ledger.settings == settings

    @pytest.mark.asyncio
    async def test_requires_configuration(self, mailbox, ledger):
        with pytest.raises(ConfigurationError):
            await _service(SyncConfig(), mailbox, ledger).connect()
