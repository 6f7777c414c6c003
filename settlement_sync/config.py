"""Settlement sync configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars.
Credentials default to empty so that a misconfigured deployment can be
reported as a whole (see :meth:`SyncConfig.missing_settings`) instead of
failing on the first missing variable at import time.
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class GmailConfig(BaseSettings):
    """Gmail OAuth credentials and API settings."""

    model_config = {"env_prefix": "GMAIL_"}

    client_id: str = Field(default="", description="OAuth client ID")
    client_secret: SecretStr = Field(default=SecretStr(""), description="OAuth client secret")
    redirect_uri: str = Field(default="", description="OAuth redirect URI registered for the client")
    refresh_token: SecretStr = Field(
        default=SecretStr(""),
        description="Long-lived OAuth refresh token for the mailbox",
    )
    user: str = Field(default="", description="Mailbox address the sync reads from")
    token_uri: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth token endpoint",
    )
    api_base_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1",
        description="Gmail REST API base URL",
    )
    page_size: int = Field(default=100, description="Message ids requested per search page")
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")


class LedgerConfig(BaseSettings):
    """Ledger store (PostgREST RPC) connection settings."""

    model_config = {"env_prefix": "LEDGER_"}

    url: str = Field(default="", description="Base URL of the ledger store")
    service_key: SecretStr = Field(
        default=SecretStr(""),
        description="Service-role key; bypasses row-level security",
    )
    org_id: str = Field(default="", description="Organization identifier scoping all writes")
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")


class RetryConfig(BaseSettings):
    """Backoff for mail provider requests (ledger writes are not retried)."""

    model_config = {"env_prefix": "RETRY_"}

    max_attempts: int = Field(default=3, description="Maximum attempts per provider request")
    initial_wait_seconds: float = Field(
        default=1.0,
        description="First wait between provider attempts, in seconds",
    )
    max_wait_seconds: float = Field(
        default=10.0,
        description="Upper bound on a single wait, in seconds",
    )
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")


class SyncConfig(BaseSettings):
    """Root configuration for the settlement sync service.

    Gmail, ledger and retry settings read their own env-var prefixes.
    """

    model_config = {"env_prefix": "SYNC_"}

    shared_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Value the scheduler sends in the X-Sync-Secret header",
    )
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Time zone the ledger's business days are defined in",
    )
    currency: str = Field(default="INR", description="Ledger home currency code")
    run_timeout_seconds: float = Field(
        default=300.0,
        description="Upper bound on a single sync run",
    )
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="JSON log lines; disable for the console renderer",
    )

    gmail: GmailConfig = Field(default_factory=GmailConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    def missing_settings(self) -> list[str]:
        """Return the env var names of required settings that are empty."""
        required = {
            "GMAIL_CLIENT_ID": self.gmail.client_id,
            "GMAIL_CLIENT_SECRET": self.gmail.client_secret.get_secret_value(),
            "GMAIL_REDIRECT_URI": self.gmail.redirect_uri,
            "GMAIL_REFRESH_TOKEN": self.gmail.refresh_token.get_secret_value(),
            "GMAIL_USER": self.gmail.user,
            "LEDGER_URL": self.ledger.url,
            "LEDGER_SERVICE_KEY": self.ledger.service_key.get_secret_value(),
            "LEDGER_ORG_ID": self.ledger.org_id,
        }
        return [name for name, value in required.items() if not value]
