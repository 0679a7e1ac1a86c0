"""Application lifespan: startup and shutdown.

Wiring only: logging, the approval event sink (log-only, or webhook when
APPROVAL_WEBHOOK_URL is set) and the SQL engine dispose on exit.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from hrflow.core.config import get_settings
from hrflow.infrastructure.services.event_sinks import build_event_sink
from hrflow.shared.telemetry.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run startup then yield; on exit run shutdown.

    Startup: logging, shared HTTP client (webhook only), event sink.
    Shutdown: HTTP client close, SQL engine dispose.
    """
    settings = get_settings()

    # ---- Startup ----
    setup_logging()
    if settings.approval_webhook_url:
        app.state.webhook_http_client = httpx.AsyncClient(
            timeout=settings.approval_webhook_timeout_seconds
        )
    else:
        app.state.webhook_http_client = None
    app.state.approval_event_sink = build_event_sink(
        settings, app.state.webhook_http_client
    )
    logger.info(
        "%s %s started (event sink: %s)",
        settings.app_name,
        settings.app_version,
        type(app.state.approval_event_sink).__name__,
    )

    yield

    # ---- Shutdown ----
    if getattr(app.state, "webhook_http_client", None) is not None:
        await app.state.webhook_http_client.aclose()
        app.state.webhook_http_client = None
        logger.info("Webhook HTTP client closed")

    from hrflow.infrastructure.persistence import database

    if getattr(database, "engine", None) is not None:
        await database.engine.dispose()
        logger.info("Database engine disposed")
