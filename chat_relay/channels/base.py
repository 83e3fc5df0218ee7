# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Chat channel contract.

The relay writes into a third-party chat platform through two calls:
- partial message updates (the streamed text)
- channel events (the AI indicator shown next to the message)
"""

from enum import Enum
from typing import Any, Protocol

# Local event raised by the chat client when a user asks to stop generating
STOP_GENERATING_EVENT = "ai_indicator.stop"

INDICATOR_UPDATE_EVENT = "ai_indicator.update"
INDICATOR_CLEAR_EVENT = "ai_indicator.clear"


class IndicatorState(str, Enum):
    """UI state of the AI indicator attached to a message."""

    GENERATING = "AI_STATE_GENERATING"
    ERROR = "AI_STATE_ERROR"
    CLEAR = "AI_STATE_CLEAR"


class ChatChannel(Protocol):
    """Protocol for the chat platform operations used by the relay."""

    async def send_event(self, event: dict[str, Any]) -> Any:
        """Send an ephemeral event to the channel."""
        ...

    async def partial_update_message(
        self, message_id: str, set_fields: dict[str, Any]
    ) -> Any:
        """Set fields on an existing message."""
        ...


def build_indicator_event(
    state: IndicatorState, cid: str, message_id: str
) -> dict[str, Any]:
    """Build the channel event payload for an indicator state.

    CLEAR is sent as its own event type, the other states as an update
    carrying ``ai_state``.
    """
    if state == IndicatorState.CLEAR:
        return {
            "type": INDICATOR_CLEAR_EVENT,
            "cid": cid,
            "message_id": message_id,
        }
    return {
        "type": INDICATOR_UPDATE_EVENT,
        "ai_state": state.value,
        "cid": cid,
        "message_id": message_id,
    }

