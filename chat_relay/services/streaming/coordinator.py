# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Response stream coordinator.

Bridges one generation run to one chat message:
- Accumulates text deltas and writes throttled partial updates
- Writes the final text and clears the AI indicator on completion
- Reports stream errors on the message itself
- Cancels the backend run when the user stops generation
- Tears everything down exactly once
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, AsyncIterable, Callable, Optional, Protocol

from chat_relay.channels.base import (
    STOP_GENERATING_EVENT,
    ChatChannel,
    IndicatorState,
    build_indicator_event,
)
from chat_relay.channels.signals import ChannelEvent, SignalHub
from chat_relay.core.config import settings
from chat_relay.core.exceptions import GenerationError

from .events import (
    STEP_MESSAGE_CREATION,
    GenerationRun,
    MessageCompleted,
    RunCreated,
    RunFailed,
    RunStepCreated,
    StreamEvent,
    TargetMessage,
    TextDelta,
)

logger = logging.getLogger(__name__)

DEFAULT_ERROR_TEXT = "Error generating the message"


class GenerationBackend(Protocol):
    """Protocol for the backend operations the coordinator needs."""

    async def cancel_run(self, run_id: str) -> Any:
        """Cancel a run. May raise if the run is already terminal."""
        ...


class CoordinatorState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"
    DISPOSED = "disposed"


class ResponseStreamCoordinator:
    """Owns one in-flight generation run bound to one chat message.

    Usage:
        coordinator = ResponseStreamCoordinator(
            backend, channel, signals, message, on_dispose=release
        )
        await coordinator.run(backend_events)
    """

    def __init__(
        self,
        backend: GenerationBackend,
        channel: ChatChannel,
        signals: SignalHub,
        message: TargetMessage,
        on_dispose: Callable[[], None],
        update_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the coordinator and listen for the stop signal.

        Args:
            backend: Generation backend used to cancel the run
            channel: Chat channel receiving updates and indicator events
            signals: Hub delivering the chat client's stop signal
            message: Target message, exclusively owned by this coordinator
            on_dispose: Called once on teardown
            update_interval: Minimum seconds between partial updates
            clock: Monotonic time source
        """
        self._backend = backend
        self._channel = channel
        self._message = message
        self._on_dispose = on_dispose
        self._update_interval = (
            settings.STREAMING_UPDATE_INTERVAL
            if update_interval is None
            else update_interval
        )
        self._clock = clock

        self._run = GenerationRun()
        self._state = CoordinatorState.IDLE
        self._outcome: Optional[CoordinatorState] = None
        # Task driving run(), while it is consuming the stream
        self._task: Optional[asyncio.Task] = None

        self._subscription = signals.on(
            STOP_GENERATING_EVENT, self.handle_stop_generating
        )

    @property
    def message(self) -> TargetMessage:
        return self._message

    @property
    def generation_run(self) -> GenerationRun:
        return self._run

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def outcome(self) -> Optional[CoordinatorState]:
        """Terminal state reached before disposal, if any."""
        return self._outcome

    @property
    def is_disposed(self) -> bool:
        return self._run.done

    async def run(self, events: AsyncIterable[StreamEvent]) -> None:
        """Consume backend events until the message is finished.

        Never raises except for task cancellation, which disposes the
        coordinator first.
        """
        if self._state != CoordinatorState.IDLE:
            logger.warning(
                "[StreamCoordinator] run() ignored for message %s in state %s",
                self._message.id,
                self._state.value,
            )
            return

        self._state = CoordinatorState.RUNNING
        self._run.last_flush = self._clock()
        self._task = asyncio.current_task()
        logger.info("[StreamCoordinator] Started for message %s", self._message.id)

        try:
            async for event in events:
                if self._run.done:
                    break
                await self.handle_stream_event(event)
                if self._run.done:
                    break
            else:
                if not self._run.done:
                    await self._finish_without_completion()
        except asyncio.CancelledError:
            logger.info(
                "[StreamCoordinator] Task cancelled for message %s", self._message.id
            )
            await self.dispose()
            raise
        except Exception as e:
            logger.exception(
                "[StreamCoordinator] Stream error for message %s", self._message.id
            )
            await self.handle_error(e)
        finally:
            self._task = None
            await self._close_stream(events)

    async def _close_stream(self, events: AsyncIterable[StreamEvent]) -> None:
        """Close the backend stream so its response is released."""
        aclose = getattr(events, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception as e:
            logger.warning(
                "[StreamCoordinator] Failed to close stream for message %s: %s",
                self._message.id,
                e,
            )

    async def handle_stream_event(self, event: StreamEvent) -> None:
        """Apply one backend event to the message."""
        if self._run.done:
            return

        if isinstance(event, RunCreated):
            self._run.run_id = event.run_id
            logger.debug(
                "[StreamCoordinator] Run %s created for message %s",
                event.run_id,
                self._message.id,
            )
        elif isinstance(event, TextDelta):
            await self._handle_text_delta(event.text)
        elif isinstance(event, MessageCompleted):
            await self._handle_message_completed(event)
        elif isinstance(event, RunStepCreated):
            if event.step_type == STEP_MESSAGE_CREATION:
                await self._send_indicator(IndicatorState.GENERATING)
        elif isinstance(event, RunFailed):
            await self.handle_error(GenerationError(event.message))
        else:
            logger.debug("[StreamCoordinator] Ignoring event %r", event)

    async def _handle_text_delta(self, text: str) -> None:
        self._message.append(text)

        now = self._clock()
        if now - self._run.last_flush < self._update_interval:
            return

        self._run.last_flush = now
        try:
            await self._channel.partial_update_message(
                self._message.id, {"text": self._message.text}
            )
        except Exception as e:
            logger.warning(
                "[StreamCoordinator] Partial update failed for message %s: %s",
                self._message.id,
                e,
            )

    async def _handle_message_completed(self, event: MessageCompleted) -> None:
        if event.text is None:
            logger.warning(
                "[StreamCoordinator] Completed content for message %s has no text content, "
                "using buffered text (%d chars)",
                self._message.id,
                len(self._message.text),
            )
            final_text = self._message.text
        else:
            final_text = event.text

        await self._update_message(final_text)
        await self._send_indicator(IndicatorState.CLEAR)
        if self._run.done:
            return
        self._outcome = CoordinatorState.COMPLETED
        logger.info(
            "[StreamCoordinator] Completed message %s (chunks=%d, chars=%d)",
            self._message.id,
            self._message.chunk_counter,
            len(final_text),
        )
        await self.dispose()

    async def _finish_without_completion(self) -> None:
        logger.warning(
            "[StreamCoordinator] Stream ended without completion for message %s",
            self._message.id,
        )
        await self._handle_message_completed(MessageCompleted(text=None))

    async def handle_error(self, error: BaseException) -> None:
        """Report a generation failure on the message and dispose."""
        if self._run.done:
            return

        description = str(error) or DEFAULT_ERROR_TEXT
        try:
            await self._send_indicator(IndicatorState.ERROR)
        except Exception:
            logger.exception(
                "[StreamCoordinator] Failed to send error indicator for message %s",
                self._message.id,
            )
        try:
            await self._update_message(description)
        except Exception:
            logger.exception(
                "[StreamCoordinator] Failed to write error text for message %s",
                self._message.id,
            )
        if self._run.done:
            return
        self._outcome = CoordinatorState.ERRORED
        await self.dispose()

    async def handle_stop_generating(self, event: ChannelEvent) -> None:
        """Stop-signal handler; only reacts to this coordinator's message."""
        if self._run.done or event.message_id != self._message.id:
            return

        logger.info("[StreamCoordinator] Stop generating for message %s", self._message.id)

        if self._run.run_id:
            try:
                await self._backend.cancel_run(self._run.run_id)
            except Exception as e:
                logger.error(
                    "[StreamCoordinator] Error cancelling run %s: %s",
                    self._run.run_id,
                    e,
                )
            # The stream may have finished while the cancel call was pending
            if self._run.done:
                return

        try:
            await self._send_indicator(IndicatorState.CLEAR)
        except Exception:
            logger.exception(
                "[StreamCoordinator] Failed to clear indicator for message %s",
                self._message.id,
            )
        if self._run.done:
            return
        self._outcome = CoordinatorState.CANCELLED
        await self.dispose()

    async def dispose(self) -> None:
        """Release the stop-signal subscription and notify the owner, once."""
        if self._run.done:
            return
        self._run.done = True
        self._state = CoordinatorState.DISPOSED

        self._subscription.release()
        try:
            self._on_dispose()
        except Exception:
            logger.exception(
                "[StreamCoordinator] on_dispose callback failed for message %s",
                self._message.id,
            )

        # Disposed from outside run() (e.g. a stop signal): the stream may
        # never yield again, so stop waiting on it
        task = self._task
        if task is not None and task is not asyncio.current_task() and not task.done():
            logger.debug(
                "[StreamCoordinator] Cancelling stream task for message %s",
                self._message.id,
            )
            task.cancel()
        logger.debug("[StreamCoordinator] Disposed message %s", self._message.id)

    async def _send_indicator(self, state: IndicatorState) -> None:
        if self._run.done:
            return
        await self._channel.send_event(
            build_indicator_event(state, self._message.cid, self._message.id)
        )

    async def _update_message(self, text: str) -> None:
        if self._run.done:
            return
        self._message.text = text
        await self._channel.partial_update_message(self._message.id, {"text": text})
