# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Chat channel contract, Stream Chat adapter and local signal hub."""

from .base import (
    STOP_GENERATING_EVENT,
    ChatChannel,
    IndicatorState,
    build_indicator_event,
)
from .signals import ChannelEvent, SignalHub, Subscription
from .stream_chat import StreamChatChannel, create_chat_client

__all__ = [
    "STOP_GENERATING_EVENT",
    "ChatChannel",
    "IndicatorState",
    "build_indicator_event",
    "ChannelEvent",
    "SignalHub",
    "Subscription",
    "StreamChatChannel",
    "create_chat_client",
]
