"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination

from app.adapters.lark import LarkAdapter
from app.config import Settings, get_settings
from app.core.app_state import AppState
from app.core.runtime import CompletionClient, ReplySender
from app.db import DatabaseManager
from app.exceptions import StorageError
from app.infra.logging_config import get_logger, setup_logging
from app.routers import system, webhooks
from app.routers.sessions_router import events_router, sessions_router, turns_router
from app.services.message_store import MessageStore
from app.workers.llm import build_completion_client_from_settings

logger = get_logger()


def create_app(
    settings: Optional[Settings] = None,
    *,
    message_store: Optional[MessageStore] = None,
    completion_client: Optional[CompletionClient] = None,
    reply_sender: Optional[ReplySender] = None,
) -> FastAPI:
    """
    Build the app. Collaborators not passed in are created from settings when
    the app starts; the store is closed on shutdown only if the app created it.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store = message_store
        owns_store = store is None
        if store is None:
            store = MessageStore(
                DatabaseManager(settings.database_url, echo=settings.database_echo)
            )
        store.init_schema()

        adapter = LarkAdapter(
            app_id=settings.lark_app_id,
            app_secret=settings.lark_app_secret,
            verification_token=settings.lark_verification_token,
            api_base_url=settings.lark_api_base_url,
            timeout_seconds=settings.lark_request_timeout_seconds,
        )
        if not settings.lark_configured and reply_sender is None:
            logger.warning(
                "LARK_APP_ID/LARK_APP_SECRET are not set; replies cannot be delivered."
            )

        app.state.relay = AppState(
            settings=settings,
            store=store,
            adapter=adapter,
            completion_client=completion_client
            or build_completion_client_from_settings(settings),
            reply_sender=reply_sender or adapter,
        )
        logger.info(
            "%s started (env=%s, dispatch=%s)",
            settings.app_name,
            settings.environment,
            settings.dispatch_mode,
        )
        try:
            yield
        finally:
            if owns_store:
                store.close()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage error on %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})

    app.include_router(webhooks.router)
    app.include_router(sessions_router)
    app.include_router(turns_router)
    app.include_router(events_router)
    app.include_router(system.router)
    add_pagination(app)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
