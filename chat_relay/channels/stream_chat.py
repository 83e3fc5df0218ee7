# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Stream Chat channel.

Writes streamed replies into Stream Chat through the server-side SDK.
Server-side calls act on behalf of a user, so every call carries the id of
the AI user the replies are sent as.
"""

import logging
from typing import Any, Dict, Optional

from stream_chat import StreamChatAsync

from chat_relay.core.config import settings

logger = logging.getLogger(__name__)


def create_chat_client(api_key: str, api_secret: str) -> StreamChatAsync:
    """Create the server-side Stream Chat client.

    Must be called inside a running event loop; the client owns an aiohttp
    session that has to be closed with ``await client.close()``.
    """
    return StreamChatAsync(api_key=api_key, api_secret=api_secret)


class StreamChatChannel:
    """Chat channel bound to one Stream Chat channel.

    Usage:
        channel = StreamChatChannel(client, "messaging:general")
        await channel.partial_update_message(message_id, {"text": "..."})
    """

    def __init__(
        self,
        client: StreamChatAsync,
        cid: str,
        user_id: Optional[str] = None,
    ):
        """
        Args:
            client: Server-side Stream Chat client
            cid: Channel id in ``type:id`` form
            user_id: User the replies are sent as, defaults to
                ``settings.STREAM_AI_USER_ID``

        Raises:
            ValueError: If cid is not in ``type:id`` form
        """
        channel_type, _, channel_id = cid.partition(":")
        if not channel_type or not channel_id:
            raise ValueError(f"Invalid channel cid: {cid!r}")

        self._client = client
        self.cid = cid
        self.user_id = user_id or settings.STREAM_AI_USER_ID
        self._channel = client.channel(channel_type, channel_id)

    async def send_event(self, event: Dict[str, Any]) -> Any:
        """Send an ephemeral event to the channel."""
        logger.debug("[StreamChatChannel] %s event on %s", event.get("type"), self.cid)
        # The SDK writes user_id into the dict it receives
        return await self._channel.send_event(dict(event), self.user_id)

    async def partial_update_message(
        self, message_id: str, set_fields: Dict[str, Any]
    ) -> Any:
        """Set fields on a message, leaving its other fields untouched."""
        return await self._client.update_message_partial(
            message_id, {"set": set_fields}, self.user_id
        )
