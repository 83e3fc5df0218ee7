# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

from unittest.mock import AsyncMock, MagicMock

import pytest

from chat_relay.channels.signals import SignalHub


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def iterate(events, before_each=None):
    """Yield events as an async stream, optionally running a hook first."""
    for event in events:
        if before_each is not None:
            before_each(event)
        yield event


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signals():
    return SignalHub()


@pytest.fixture
def channel():
    """Mock chat channel recording updates and events."""
    mock = MagicMock()
    mock.send_event = AsyncMock()
    mock.partial_update_message = AsyncMock()
    return mock


@pytest.fixture
def backend():
    mock = MagicMock()
    mock.cancel_run = AsyncMock()
    return mock


@pytest.fixture
def event_stream():
    """Factory turning a list of events into an async iterator."""
    return iterate
