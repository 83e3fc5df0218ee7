# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Chat platform webhook endpoint."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request, status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post("/events")
async def receive_chat_event(
    request: Request,
    x_signature: Optional[str] = Header(None, alias="X-Signature"),
):
    """
    Receive a chat platform event and hand it to the signal hub.

    The request must carry the platform's HMAC signature of the raw body
    in the X-Signature header. Stop-generating events reach the coordinator
    of the referenced message; other event types are ignored unless a
    handler is registered for them.
    """
    body = await request.body()

    if not x_signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Signature header",
        )
    if not request.app.state.chat_client.verify_webhook(body, x_signature):
        logger.warning("[events] Invalid webhook signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature",
        )

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        )
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event payload must be an object",
        )

    logger.debug("[events] Received %s", payload.get("type"))
    await request.app.state.registry.signals.dispatch(payload)
    return {"status": "ok"}
