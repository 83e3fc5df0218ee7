# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Registry of active response stream coordinators."""

import asyncio
import logging
from typing import AsyncIterable, Dict, Optional, Set

from chat_relay.channels.base import ChatChannel
from chat_relay.channels.signals import SignalHub

from .coordinator import GenerationBackend, ResponseStreamCoordinator
from .events import StreamEvent, TargetMessage

logger = logging.getLogger(__name__)


class CoordinatorRegistry:
    """
    Tracks coordinators by message id.

    A coordinator removes itself from the registry when it disposes, through
    the on_dispose callback supplied at creation. Background tasks driving
    coordinators are kept until they finish.
    """

    def __init__(self, signals: SignalHub):
        self._signals = signals
        self._coordinators: Dict[str, ResponseStreamCoordinator] = {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def signals(self) -> SignalHub:
        return self._signals

    @property
    def active_count(self) -> int:
        return len(self._coordinators)

    def get(self, message_id: str) -> Optional[ResponseStreamCoordinator]:
        return self._coordinators.get(message_id)

    def create(
        self,
        backend: GenerationBackend,
        channel: ChatChannel,
        message: TargetMessage,
        update_interval: Optional[float] = None,
    ) -> ResponseStreamCoordinator:
        """Create and register a coordinator for a message.

        Raises:
            ValueError: If a coordinator is already active for the message
        """
        if message.id in self._coordinators:
            raise ValueError(f"A response is already streaming for message {message.id}")

        coordinator = ResponseStreamCoordinator(
            backend=backend,
            channel=channel,
            signals=self._signals,
            message=message,
            on_dispose=lambda: self.release(message.id),
            update_interval=update_interval,
        )
        self._coordinators[message.id] = coordinator
        logger.info(
            "[CoordinatorRegistry] Registered message %s (active: %d)",
            message.id,
            self.active_count,
        )
        return coordinator

    def release(self, message_id: str) -> None:
        """Forget a coordinator. Unknown ids are ignored."""
        if self._coordinators.pop(message_id, None) is not None:
            logger.info(
                "[CoordinatorRegistry] Released message %s (active: %d)",
                message_id,
                self.active_count,
            )

    def start(
        self,
        coordinator: ResponseStreamCoordinator,
        events: AsyncIterable[StreamEvent],
    ) -> asyncio.Task:
        """Drive a coordinator in a background task."""
        task = asyncio.create_task(coordinator.run(events))
        # Tasks are tracked independently of message ids: a finished message
        # can be restarted while its previous task is still unwinding
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def dispose_all(self) -> int:
        """Dispose every active coordinator and cancel their tasks.

        Returns:
            Number of coordinators disposed
        """
        coordinators = list(self._coordinators.values())
        for coordinator in coordinators:
            await coordinator.dispose()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if coordinators:
            logger.info(
                "[CoordinatorRegistry] Disposed %d active coordinators",
                len(coordinators),
            )
        return len(coordinators)
