"""Settlement mail sync: ingest payout and release notices into the ledger store."""

from .api import create_app
from .classifier import Classification, classify
from .config import GmailConfig, LedgerConfig, RetryConfig, SyncConfig
from .dedup import DedupResult, deduplicate
from .errors import (
    ConfigurationError,
    DuplicateSettlementEvent,
    LedgerStoreError,
    MailboxNotConnectedError,
    MailFetchError,
    SettlementSyncError,
)
from .gmail_client import GmailClient
from .ledger import LedgerStore
from .logging import setup_logging
from .mime import AttachmentDescriptor, ExtractedContent, extract_content
from .models import (
    Category,
    EventType,
    IngestBatch,
    IngestStatus,
    MailboxSettings,
    MailMessage,
    MailPart,
    RunSummary,
    SettlementEvent,
)
from .parsing import event_date, parse_amount
from .pipeline import SyncPipeline
from .query import build_queries
from .retry import with_retry
from .service import SettlementSyncService
from .writer import IngestionWriter, Outcome, WriteResult

__all__ = [
    "AttachmentDescriptor",
    "Category",
    "Classification",
    "ConfigurationError",
    "DedupResult",
    "DuplicateSettlementEvent",
    "EventType",
    "ExtractedContent",
    "GmailClient",
    "GmailConfig",
    "IngestBatch",
    "IngestStatus",
    "IngestionWriter",
    "LedgerConfig",
    "LedgerStore",
    "LedgerStoreError",
    "MailFetchError",
    "MailMessage",
    "MailPart",
    "MailboxNotConnectedError",
    "MailboxSettings",
    "Outcome",
    "RetryConfig",
    "RunSummary",
    "SettlementEvent",
    "SettlementSyncError",
    "SettlementSyncService",
    "SyncConfig",
    "SyncPipeline",
    "WriteResult",
    "build_queries",
    "classify",
    "create_app",
    "deduplicate",
    "event_date",
    "extract_content",
    "parse_amount",
    "setup_logging",
    "with_retry",
]
