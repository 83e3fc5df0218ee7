# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""FastAPI application for the chat relay service."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chat_relay.channels.signals import SignalHub
from chat_relay.channels.stream_chat import create_chat_client
from chat_relay.core.config import settings
from chat_relay.services.streaming.registry import CoordinatorRegistry

from .events import router as events_router
from .health import router as health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s %s", settings.PROJECT_NAME, settings.VERSION)

    # The SDK client owns an aiohttp session and must be created on the loop
    owns_client = app.state.chat_client is None
    if owns_client:
        app.state.chat_client = create_chat_client(*app.state.chat_credentials)

    yield

    disposed = await app.state.registry.dispose_all()
    if owns_client:
        await app.state.chat_client.close()
        app.state.chat_client = None
    logger.info("Shutdown complete, disposed %d active responses", disposed)


def create_app(
    registry: CoordinatorRegistry | None = None,
    chat_client: Any = None,
) -> FastAPI:
    """Create the application.

    Args:
        registry: Coordinator registry shared with the chat integration.
            A new one with its own signal hub is created when omitted.
        chat_client: Stream Chat server client. When omitted one is built
            from the configured credentials at startup and closed at shutdown.
    """
    credentials = settings.require_chat_credentials()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )
    app.state.registry = registry or CoordinatorRegistry(SignalHub())
    app.state.chat_credentials = credentials
    app.state.chat_client = chat_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health_router)
    app.include_router(events_router)
    return app
