"""Exception hierarchy for the settlement sync."""

from __future__ import annotations


class SettlementSyncError(Exception):
    """Base class for all settlement sync errors."""


class ConfigurationError(SettlementSyncError):
    """Credentials or environment are missing; nothing was processed."""

    def __init__(self, message: str, *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class MailboxNotConnectedError(ConfigurationError):
    """The organization has not connected its mailbox yet."""


class MailFetchError(SettlementSyncError):
    """The mail provider could not be reached or refused a request."""


class LedgerStoreError(SettlementSyncError):
    """A ledger store remote procedure failed."""

    def __init__(self, message: str, *, code: str | None = None, procedure: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.procedure = procedure


class DuplicateSettlementEvent(LedgerStoreError):
    """The store rejected a settlement event that already exists."""
