"""Shared test fixtures for the settlement sync test suite."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from settlement_sync.config import GmailConfig, LedgerConfig, RetryConfig, SyncConfig
from settlement_sync.pipeline import SyncPipeline

from tests.fakes import LEDGER_TZ, FakeLedger, FakeMailbox

IST = ZoneInfo(LEDGER_TZ)
SYNCED_AT = datetime(2025, 6, 3, 4, 30, tzinfo=ZoneInfo("UTC"))


@pytest.fixture
def gmail_config() -> GmailConfig:
    return GmailConfig(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="https://example.com/oauth/callback",
        refresh_token="refresh-token",
        user="finance@example.com",
        token_uri="https://oauth.test/token",
        api_base_url="https://gmail.test/gmail/v1",
        page_size=2,
    )


@pytest.fixture
def ledger_config() -> LedgerConfig:
    return LedgerConfig(url="https://ledger.test", service_key="service-key", org_id="org-1")


@pytest.fixture
def retry_config() -> RetryConfig:
    return RetryConfig(max_attempts=3, initial_wait_seconds=0.01, max_wait_seconds=0.02)


@pytest.fixture
def sync_config(
    gmail_config: GmailConfig,
    ledger_config: LedgerConfig,
    retry_config: RetryConfig,
) -> SyncConfig:
    return SyncConfig(
        shared_secret="sync-secret",
        timezone=LEDGER_TZ,
        currency="INR",
        run_timeout_seconds=5.0,
        gmail=gmail_config,
        ledger=ledger_config,
        retry=retry_config,
    )


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def pipeline(mailbox: FakeMailbox, ledger: FakeLedger) -> SyncPipeline:
    return SyncPipeline(
        mailbox,
        ledger,
        timezone=LEDGER_TZ,
        currency="INR",
        clock=lambda: SYNCED_AT,
    )


def ist(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """Wall-clock time in the ledger's time zone."""
    return datetime(year, month, day, hour, minute, tzinfo=IST)
