"""FastAPI application exposing the sync and connect operations.

Both operations are called by the scheduler (or an operator), not by end
users, and are authenticated with a shared secret in ``X-Sync-Secret``.
"""

from __future__ import annotations

import hmac
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .config import SyncConfig
from .errors import ConfigurationError, LedgerStoreError, MailboxNotConnectedError, MailFetchError
from .models import ConnectResponse, SyncRequest, SyncResponse
from .service import SettlementSyncService

logger = structlog.get_logger()


def get_service(request: Request) -> SettlementSyncService:
    return request.app.state.service


def require_sync_secret(
    request: Request,
    x_sync_secret: Annotated[str | None, Header()] = None,
) -> None:
    """Reject calls whose ``X-Sync-Secret`` does not match the configured secret."""
    config: SyncConfig = request.app.state.config
    expected = config.shared_secret.get_secret_value()
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="SYNC_SHARED_SECRET is not configured",
        )
    if x_sync_secret is None or not hmac.compare_digest(x_sync_secret.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sync secret",
        )


def _failure(status_code: int, error: str) -> JSONResponse:
    body = SyncResponse(success=False, error=error)
    return JSONResponse(content=body.model_dump(mode="json"), status_code=status_code)


def create_app(
    config: SyncConfig | None = None,
    service: SettlementSyncService | None = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    if config is None:
        config = SyncConfig()

    app = FastAPI(title="Settlement Mail Sync", version="0.1.0")
    app.state.config = config
    app.state.service = service or SettlementSyncService(config)

    @app.post(
        "/api/v1/settlements/mail-sync",
        response_model=SyncResponse,
        dependencies=[Depends(require_sync_secret)],
    )
    async def mail_sync(
        body: SyncRequest,
        sync_service: Annotated[SettlementSyncService, Depends(get_service)],
    ):
        """Ingest settlement notices delivered between the two dates (inclusive)."""
        try:
            summary = await sync_service.sync(body.start_date, body.end_date)
        except MailboxNotConnectedError as exc:
            return _failure(status.HTTP_400_BAD_REQUEST, str(exc))
        except ConfigurationError as exc:
            logger.error("sync_configuration_error", missing=exc.missing)
            return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
        except (MailFetchError, LedgerStoreError) as exc:
            logger.error("sync_aborted", error=str(exc))
            return _failure(status.HTTP_502_BAD_GATEWAY, str(exc))
        except TimeoutError:
            logger.error("sync_timed_out", timeout=config.run_timeout_seconds)
            return _failure(status.HTTP_504_GATEWAY_TIMEOUT, "Sync run timed out")

        return SyncResponse.from_summary(summary)

    @app.post(
        "/api/v1/settlements/mail-connect",
        response_model=ConnectResponse,
        dependencies=[Depends(require_sync_secret)],
    )
    async def mail_connect(
        sync_service: Annotated[SettlementSyncService, Depends(get_service)],
    ):
        """Mark the configured mailbox as connected for this organization."""
        try:
            settings = await sync_service.connect()
        except ConfigurationError as exc:
            body = ConnectResponse(success=False, error=str(exc))
            return JSONResponse(content=body.model_dump(mode="json"), status_code=500)
        except LedgerStoreError as exc:
            body = ConnectResponse(success=False, error=str(exc))
            return JSONResponse(content=body.model_dump(mode="json"), status_code=502)
        return ConnectResponse(success=True, settings=settings)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "settlement-sync"}

    return app
