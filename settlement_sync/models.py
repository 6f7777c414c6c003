"""Data models for the settlement mail sync.

Provider-side models (``MailPart``, ``MailMessage``) mirror the Gmail
``format=full`` message resource and accept its camelCase keys.  Store-side
models are what the ledger store's remote procedures receive and return.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Category(str, Enum):
    """Kind of settlement notification, in deduplication priority order."""

    AMAZON_SETTLEMENT = "amazon_settlement"
    INDIFI_VIRTUAL_RECEIPT = "indifi_virtual_receipt"
    INDIFI_RELEASE = "indifi_release"


class EventType(str, Enum):
    AMAZON_SETTLEMENT = "AMAZON_SETTLEMENT"
    INDIFI_VIRTUAL_RECEIPT = "INDIFI_VIRTUAL_RECEIPT"
    INDIFI_RELEASE_TO_INDIFI = "INDIFI_RELEASE_TO_INDIFI"
    INDIFI_RELEASE_TO_BANK = "INDIFI_RELEASE_TO_BANK"


class Platform(str, Enum):
    AMAZON = "amazon"
    INDIFI = "indifi"


class Party(str, Enum):
    AMAZON = "amazon"
    INDIFI = "indifi"


class IngestStatus(str, Enum):
    """Lifecycle of an ingestion batch row."""

    PENDING = "pending"
    PARSED = "parsed"
    SKIPPED = "skipped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (IngestStatus.PARSED, IngestStatus.SKIPPED)


# ------------------------------------------------------------------
# Mail provider
# ------------------------------------------------------------------


class MailHeader(BaseModel):
    name: str
    value: str = ""


class MailPartBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    size: int = 0
    data: str | None = None
    attachment_id: str | None = Field(default=None, alias="attachmentId")


class MailPart(BaseModel):
    """One node of the provider's MIME part tree."""

    model_config = ConfigDict(populate_by_name=True)

    part_id: str | None = Field(default=None, alias="partId")
    mime_type: str | None = Field(default=None, alias="mimeType")
    filename: str | None = None
    headers: list[MailHeader] = Field(default_factory=list)
    body: MailPartBody = Field(default_factory=MailPartBody)
    parts: list[MailPart] = Field(default_factory=list)


class MailMessage(BaseModel):
    """A message as returned by ``messages.get(format=full)``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    thread_id: str | None = Field(default=None, alias="threadId")
    snippet: str = ""
    internal_date: str | None = Field(
        default=None,
        alias="internalDate",
        description="Delivery instant as epoch milliseconds",
    )
    label_ids: list[str] = Field(default_factory=list, alias="labelIds")
    payload: MailPart | None = None

    def header_map(self) -> dict[str, str]:
        """Top-level headers as a name → value dict (last one wins)."""
        if self.payload is None:
            return {}
        return {h.name: h.value for h in self.payload.headers if h.name}

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.header_map().items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def delivered_at(self) -> datetime | None:
        """Provider delivery instant (UTC), or None if absent/invalid."""
        if not self.internal_date:
            return None
        try:
            millis = int(self.internal_date)
        except ValueError:
            return None
        if millis <= 0:
            return None
        try:
            return datetime.fromtimestamp(millis / 1000, tz=UTC)
        except (ValueError, OverflowError, OSError):
            return None


# ------------------------------------------------------------------
# Ledger store
# ------------------------------------------------------------------


class IngestBatch(BaseModel):
    """The create-or-get result for an ingestion batch."""

    id: str
    status: IngestStatus = IngestStatus.PENDING


class RawPayload(BaseModel):
    """Raw evidence stored on a settlement batch.

    Only ``headers`` is left open, since provider header sets drift.
    """

    gmail_message_id: str
    subject: str | None = None
    body_text: str | None = None
    body_html: str | None = None
    category: Category
    attachment_names: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)


class SettlementEvent(BaseModel):
    """A normalized settlement fact ready for insertion."""

    batch_id: str
    platform: Platform
    event_type: EventType
    event_date: date
    amount: Decimal
    currency: str
    reference_no: str
    party: Party
    payload: dict[str, Any] = Field(default_factory=dict)


class MailboxSettings(BaseModel):
    """Mailbox connection state kept in the ledger store's company settings."""

    mailbox: str | None = None
    connected: bool = False
    last_synced_at: datetime | None = None


# ------------------------------------------------------------------
# Run summary / API
# ------------------------------------------------------------------


class SyncError(BaseModel):
    message_id: str
    error: str


class RunSummary(BaseModel):
    """Outcome of one sync run.  Not persisted."""

    scanned: int = 0
    imported: int = 0
    skipped: int = 0
    per_category_totals: dict[str, int] = Field(default_factory=dict)
    deduped: int = Field(default=0, description="Ids dropped as cross-category repeats")
    errors: list[SyncError] = Field(default_factory=list)
    last_synced_at: datetime | None = None

    @property
    def success(self) -> bool:
        return not self.errors


class SyncRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _check_window(self) -> SyncRequest:
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class SyncResponse(BaseModel):
    success: bool
    scanned: int = 0
    imported: int = 0
    skipped: int = 0
    per_category_totals: dict[str, int] = Field(default_factory=dict)
    deduped: int = 0
    errors: list[SyncError] = Field(default_factory=list)
    last_synced_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_summary(cls, summary: RunSummary) -> SyncResponse:
        return cls(success=summary.success, **summary.model_dump())


class ConnectResponse(BaseModel):
    success: bool
    settings: MailboxSettings | None = None
    error: str | None = None
