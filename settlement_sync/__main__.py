"""Entry point for the settlement sync package.

Usage::

    python -m settlement_sync serve              # HTTP API for the scheduler
    python -m settlement_sync run START END      # one-shot sync, dates as YYYY-MM-DD
"""

from __future__ import annotations

import asyncio
import sys

from .config import SyncConfig
from .logging import setup_logging

_USAGE = "Usage: python -m settlement_sync <serve | run START END>"


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in ("serve", "run"):
        print(_USAGE, file=sys.stderr)
        sys.exit(1)

    config = SyncConfig()
    setup_logging(json=config.log_json, level=config.log_level)
    mode = sys.argv[1]

    if mode == "serve":
        import uvicorn

        from .api import create_app

        uvicorn.run(
            create_app(config),
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
            log_config=None,
        )

    elif mode == "run":
        if len(sys.argv) != 4:
            print(_USAGE, file=sys.stderr)
            sys.exit(1)
        sys.exit(run_once(config, sys.argv[2], sys.argv[3]))


def run_once(config: SyncConfig, start: str, end: str) -> int:
    """Run one sync and print the JSON summary.  Returns the process exit code."""
    from .errors import ConfigurationError, LedgerStoreError, MailFetchError
    from .models import SyncRequest, SyncResponse
    from .service import SettlementSyncService

    try:
        request = SyncRequest(start_date=start, end_date=end)
    except ValueError as exc:
        print(SyncResponse(success=False, error=str(exc)).model_dump_json(indent=2))
        return 2

    service = SettlementSyncService(config)
    try:
        summary = asyncio.run(service.sync(request.start_date, request.end_date))
    except ConfigurationError as exc:
        print(SyncResponse(success=False, error=str(exc)).model_dump_json(indent=2))
        return 2
    except (MailFetchError, LedgerStoreError, TimeoutError) as exc:
        error = str(exc) or "Sync run timed out"
        print(SyncResponse(success=False, error=error).model_dump_json(indent=2))
        return 1

    print(SyncResponse.from_summary(summary).model_dump_json(indent=2))
    return 0 if summary.success else 1


if __name__ == "__main__":
    main()
