# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Local signal hub for chat client events.

Handlers are registered per event type and receive the event that was
emitted. Registration returns a Subscription; releasing the subscription
removes exactly that handler, so the same callable can be registered by
several owners without them interfering.

Usage:
    hub = SignalHub()
    subscription = hub.on("ai_indicator.stop", handler)
    await hub.emit("ai_indicator.stop", ChannelEvent(type=..., message_id=...))
    subscription.release()
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ChannelEvent:
    """Event delivered by the chat client."""

    type: str
    message_id: Optional[str] = None
    cid: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChannelEvent":
        """Build an event from a raw chat platform payload."""
        known = {"type", "message_id", "cid"}
        return cls(
            type=payload.get("type", ""),
            message_id=payload.get("message_id"),
            cid=payload.get("cid"),
            data={k: v for k, v in payload.items() if k not in known},
        )


SignalHandler = Callable[[ChannelEvent], Awaitable[None]]


class Subscription:
    """Handle for one registered handler."""

    def __init__(self, hub: "SignalHub", event_type: str, handler: SignalHandler):
        self._hub = hub
        self.event_type = event_type
        self.handler = handler
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        """Unregister the handler. Releasing twice is a no-op."""
        if not self._active:
            return
        self._active = False
        self._hub._remove(self)


class SignalHub:
    """In-process emitter for chat client events."""

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def on(self, event_type: str, handler: SignalHandler) -> Subscription:
        """Register a handler and return its subscription handle."""
        subscription = Subscription(self, event_type, handler)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event_type)
        if not subscriptions:
            return
        self._subscriptions[subscription.event_type] = [
            s for s in subscriptions if s is not subscription
        ]
        if not self._subscriptions[subscription.event_type]:
            del self._subscriptions[subscription.event_type]

    def handler_count(self, event_type: str) -> int:
        return len(self._subscriptions.get(event_type, []))

    async def emit(self, event_type: str, event: ChannelEvent) -> None:
        """Deliver an event to every handler registered for its type.

        Handlers run sequentially on a snapshot of the subscriptions, so a
        handler may release its own subscription while being called.
        """
        for subscription in list(self._subscriptions.get(event_type, [])):
            if not subscription.active:
                continue
            try:
                await subscription.handler(event)
            except Exception:
                logger.exception(
                    "[SignalHub] Handler failed for event %s (message_id=%s)",
                    event_type,
                    event.message_id,
                )

    async def dispatch(self, payload: Dict[str, Any]) -> None:
        """Emit a raw chat platform event payload."""
        event = ChannelEvent.from_payload(payload)
        await self.emit(event.type, event)
