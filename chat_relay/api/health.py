# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Status and health endpoints."""

from fastapi import APIRouter, Request

from chat_relay.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Service banner, including the public chat API key for clients."""
    return {
        "message": "AI Writing Assistant server is running.",
        "apiKey": settings.STREAM_API_KEY,
    }


@router.get("/health")
async def health_check(request: Request):
    """
    Liveness probe endpoint.

    Returns:
        dict: Health status with the number of responses being streamed
    """
    from chat_relay import __version__

    registry = request.app.state.registry
    return {
        "status": "healthy",
        "version": __version__,
        "active_responses": registry.active_count,
    }
