"""Tests for settlement_sync.api."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from settlement_sync.api import create_app
from settlement_sync.config import SyncConfig
from settlement_sync.errors import ConfigurationError, LedgerStoreError, MailFetchError
from settlement_sync.models import Category, MailboxSettings
from settlement_sync.service import SettlementSyncService

from tests.conftest import ist
from tests.fakes import FakeLedger, FakeMailbox, make_message

SYNC_URL = "/api/v1/settlements/mail-sync"
CONNECT_URL = "/api/v1/settlements/mail-connect"
AUTH = {"X-Sync-Secret": "sync-secret"}
WINDOW = {"start_date": "2025-06-01", "end_date": "2025-06-01"}


@pytest.fixture
def client(sync_config: SyncConfig, mailbox: FakeMailbox, ledger: FakeLedger) -> TestClient:
    service = SettlementSyncService(sync_config, mail_factory=lambda: mailbox, store_factory=lambda: ledger)
    return TestClient(create_app(sync_config, service))


def _client_with(sync_config: SyncConfig, **sync_kwargs) -> TestClient:
    service = MagicMock(spec=SettlementSyncService)
    service.sync = AsyncMock(**sync_kwargs)
    service.connect = AsyncMock(**sync_kwargs)
    return TestClient(create_app(sync_config, service))


class TestAuth:
    def test_missing_secret(self, client):
        resp = client.post(SYNC_URL, json=WINDOW)
        assert resp.status_code == 401

    def test_wrong_secret(self, client):
        resp = client.post(SYNC_URL, json=WINDOW, headers={"X-Sync-Secret": "nope"})
        assert resp.status_code == 401

    def test_unconfigured_secret(self, sync_config):
        config = sync_config.model_copy(update={"shared_secret": SecretStr("")})
        resp = TestClient(create_app(config, MagicMock())).post(SYNC_URL, json=WINDOW, headers=AUTH)
        assert resp.status_code == 500

    def test_connect_requires_secret(self, client):
        assert client.post(CONNECT_URL).status_code == 401


class TestMailSync:
    def test_returns_run_summary(self, client, mailbox):
        mailbox.add(
            make_message("amz-1", text="INR 1,000.00", delivered_at=ist(2025, 6, 1)),
            Category.AMAZON_SETTLEMENT,
        )

        resp = client.post(SYNC_URL, json=WINDOW, headers=AUTH)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["scanned"] == 1
        assert data["imported"] == 1
        assert data["skipped"] == 0
        assert data["per_category_totals"]["amazon_settlement"] == 1
        assert data["per_category_totals"] == {"amazon_settlement": 1, "indifi_virtual_receipt": 0, "indifi_release": 0}
        assert data["deduped"] == 0
        assert data["errors"] == []
        assert data["last_synced_at"] is not None

    def test_per_message_errors_still_200(self, client, mailbox):
        mailbox.add(make_message("va-1", text="INR 1.00", delivered_at=ist(2025, 6, 1)), Category.INDIFI_VIRTUAL_RECEIPT)
        mailbox.fail_get["va-1"] = MailFetchError("gmail request failed")

        resp = client.post(SYNC_URL, json=WINDOW, headers=AUTH)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is False
        assert data["errors"] == [{"message_id": "va-1", "error": "gmail request failed"}]

    def test_inverted_window_rejected(self, client, mailbox):
        resp = client.post(
            SYNC_URL,
            json={"start_date": "2025-06-02", "end_date": "2025-06-01"},
            headers=AUTH,
        )
        assert resp.status_code == 422
        assert mailbox.searches == []

    def test_not_connected(self, client, ledger):
        ledger.settings = MailboxSettings(connected=False)

        resp = client.post(SYNC_URL, json=WINDOW, headers=AUTH)

        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_configuration_error(self, sync_config):
        client = _client_with(sync_config, side_effect=ConfigurationError("Missing configuration: GMAIL_USER"))

        resp = client.post(SYNC_URL, json=WINDOW, headers=AUTH)

        assert resp.status_code == 500
        assert resp.json()["error"] == "Missing configuration: GMAIL_USER"

    @pytest.mark.parametrize(
        "exc",
        [MailFetchError("gmail down"), LedgerStoreError("erp_company_settings_get failed")],
    )
    def test_upstream_failure(self, sync_config, exc):
        client = _client_with(sync_config, side_effect=exc)

        resp = client.post(SYNC_URL, json=WINDOW, headers=AUTH)

        assert resp.status_code == 502
        assert resp.json()["error"] == str(exc)

    def test_timeout(self, sync_config):
        client = _client_with(sync_config, side_effect=TimeoutError())

        resp = client.post(SYNC_URL, json=WINDOW, headers=AUTH)

        assert resp.status_code == 504
        assert resp.json()["error"] == "Sync run timed out"


class TestMailConnect:
    def test_connects_mailbox(self, client, ledger):
        ledger.settings = MailboxSettings(connected=False)

        resp = client.post(CONNECT_URL, headers=AUTH)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["settings"]["mailbox"] == "finance@example.com"
        assert data["settings"]["connected"] is True
        assert ledger.settings.connected is True

    def test_store_failure(self, sync_config):
        client = _client_with(sync_config, side_effect=LedgerStoreError("boom"))

        resp = client.post(CONNECT_URL, headers=AUTH)

        assert resp.status_code == 502
        assert resp.json() == {"success": False, "settings": None, "error": "boom"}


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "service": "settlement-sync"}
