"""Async Gmail REST client authenticated with an OAuth refresh token."""

from __future__ import annotations

import time

import httpx
import structlog

from .config import GmailConfig, RetryConfig
from .errors import MailFetchError
from .models import MailMessage
from .retry import RetryableStatus, is_retryable_status, with_retry

logger = structlog.get_logger()

# Refresh this many seconds before the provider-declared expiry.
_TOKEN_EXPIRY_MARGIN = 60.0


class GmailClient:
    """Searches the mailbox and fetches full messages.

    Transport errors and 401/408/429/5xx responses are retried with backoff;
    once retries are exhausted every failure surfaces as
    :class:`MailFetchError`.
    """

    def __init__(self, config: GmailConfig, retry: RetryConfig) -> None:
        self._config = config
        self._retry = retry
        self._client: httpx.AsyncClient | None = None
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._config.api_base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(self._config.timeout_seconds),
        )
        logger.info("gmail_client_started", user=self._config.user)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("gmail_client_stopped")

    async def __aenter__(self) -> GmailClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def search(self, query: str) -> list[str]:
        """Return ids of all messages matching *query*, following pagination."""
        ids: list[str] = []
        page_token: str | None = None

        while True:
            params: dict[str, str | int] = {
                "q": query,
                "maxResults": self._config.page_size,
                "includeSpamTrash": "false",
            }
            if page_token:
                params["pageToken"] = page_token

            data = await self._get_json("users/me/messages", params)
            ids.extend(ref["id"] for ref in data.get("messages", []) if ref.get("id"))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug("gmail_search_complete", query=query, count=len(ids))
        return ids

    async def get(self, message_id: str) -> MailMessage:
        """Fetch one message with headers and the full MIME part tree."""
        data = await self._get_json(f"users/me/messages/{message_id}", {"format": "full"})
        return MailMessage.model_validate(data)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_json(self, path: str, params: dict[str, str | int]) -> dict:
        if self._client is None:
            raise AssertionError("Client not started")

        @with_retry(self._retry)
        async def _attempt() -> dict:
            assert self._client is not None
            token = await self._get_access_token()
            response = await self._client.get(
                path,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            if response.status_code == 401:
                # Token revoked or expired early; force a refresh next attempt.
                self._access_token = None
            if is_retryable_status(response.status_code):
                raise RetryableStatus(response.status_code)
            response.raise_for_status()
            return response.json()

        try:
            return await _attempt()
        except (httpx.HTTPError, RetryableStatus, ValueError) as exc:
            logger.warning("gmail_request_failed", path=path, error=str(exc))
            raise MailFetchError(f"gmail request {path} failed: {exc}") from exc

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        assert self._client is not None
        response = await self._client.post(
            self._config.token_uri,
            data={
                "grant_type": "refresh_token",
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret.get_secret_value(),
                "refresh_token": self._config.refresh_token.get_secret_value(),
            },
        )
        if response.status_code >= 500:
            raise RetryableStatus(response.status_code)
        response.raise_for_status()

        body = response.json()
        if not body.get("access_token"):
            raise MailFetchError("token endpoint returned no access_token")
        self._access_token = body["access_token"]
        expires_in = float(body.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - _TOKEN_EXPIRY_MARGIN, 0.0)
        logger.debug("gmail_token_refreshed", expires_in=expires_in)
        return self._access_token
