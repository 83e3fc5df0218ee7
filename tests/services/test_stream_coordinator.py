# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Tests for ResponseStreamCoordinator."""

import asyncio
from unittest.mock import MagicMock, call

import pytest

from chat_relay.channels.base import STOP_GENERATING_EVENT
from chat_relay.channels.signals import ChannelEvent
from chat_relay.services.streaming.coordinator import (
    CoordinatorState,
    ResponseStreamCoordinator,
)
from chat_relay.services.streaming.events import (
    MessageCompleted,
    RunCreated,
    RunFailed,
    RunStepCreated,
    TargetMessage,
    TextDelta,
)

MESSAGE_ID = "msg-1"
CID = "messaging:general"

CLEAR_EVENT = {"type": "ai_indicator.clear", "cid": CID, "message_id": MESSAGE_ID}
GENERATING_EVENT = {
    "type": "ai_indicator.update",
    "ai_state": "AI_STATE_GENERATING",
    "cid": CID,
    "message_id": MESSAGE_ID,
}
ERROR_EVENT = {
    "type": "ai_indicator.update",
    "ai_state": "AI_STATE_ERROR",
    "cid": CID,
    "message_id": MESSAGE_ID,
}


def stop_event(message_id: str = MESSAGE_ID) -> ChannelEvent:
    return ChannelEvent(type=STOP_GENERATING_EVENT, message_id=message_id, cid=CID)


class TestResponseStreamCoordinator:
    """Tests for the coordinator state machine."""

    @pytest.fixture
    def message(self):
        return TargetMessage(id=MESSAGE_ID, cid=CID)

    @pytest.fixture
    def on_dispose(self):
        return MagicMock()

    @pytest.fixture
    def coordinator(self, backend, channel, signals, message, on_dispose, clock):
        return ResponseStreamCoordinator(
            backend=backend,
            channel=channel,
            signals=signals,
            message=message,
            on_dispose=on_dispose,
            update_interval=1.0,
            clock=clock,
        )

    def test_init(self, coordinator, signals):
        """Construction listens for the stop signal and starts idle."""
        assert coordinator.state == CoordinatorState.IDLE
        assert coordinator.outcome is None
        assert coordinator.is_disposed is False
        assert coordinator.generation_run.run_id == ""
        assert signals.handler_count(STOP_GENERATING_EVENT) == 1

    @pytest.mark.asyncio
    async def test_end_to_end_completion(
        self, coordinator, channel, on_dispose, clock, event_stream
    ):
        """Deltas across the debounce boundary, then the final text."""

        def advance(event):
            if isinstance(event, TextDelta) and event.text == " world":
                clock.advance(1.5)

        events = [
            RunCreated(run_id="R1"),
            TextDelta(text="Hello"),
            TextDelta(text=" world"),
            MessageCompleted(text="Hello world!"),
        ]

        await coordinator.run(event_stream(events, before_each=advance))

        assert channel.partial_update_message.await_args_list == [
            call(MESSAGE_ID, {"text": "Hello world"}),
            call(MESSAGE_ID, {"text": "Hello world!"}),
        ]
        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()
        assert coordinator.generation_run.run_id == "R1"
        assert coordinator.outcome == CoordinatorState.COMPLETED
        assert coordinator.state == CoordinatorState.DISPOSED
        assert coordinator.message.text == "Hello world!"

    @pytest.mark.asyncio
    async def test_deltas_accumulate_in_order(self, coordinator, event_stream):
        """Buffer is the concatenation of every delta in arrival order."""
        fragments = ["The ", "quick ", "", "brown ", "fox"]

        await coordinator.run(
            event_stream([TextDelta(text=f) for f in fragments] + [MessageCompleted()])
        )

        assert coordinator.message.text == "The quick brown fox"
        # Empty deltas still count as chunks
        assert coordinator.message.chunk_counter == 5

    @pytest.mark.asyncio
    async def test_burst_within_interval_is_debounced(
        self, coordinator, channel, clock, event_stream
    ):
        """A burst under one interval produces no intermediate update."""

        def tick(event):
            clock.advance(0.05)

        events = [TextDelta(text=str(i)) for i in range(15)]
        events.append(MessageCompleted(text="final"))

        await coordinator.run(event_stream(events, before_each=tick))

        assert channel.partial_update_message.await_args_list == [
            call(MESSAGE_ID, {"text": "final"}),
        ]

    @pytest.mark.asyncio
    async def test_long_stream_flushes_once_per_interval(
        self, coordinator, channel, clock, event_stream
    ):
        def tick(event):
            clock.advance(0.4)

        events = [TextDelta(text="x") for _ in range(10)]
        events.append(MessageCompleted(text="x" * 10))

        await coordinator.run(event_stream(events, before_each=tick))

        # Flushes at 1.2s, 2.4s and 3.6s after start, then the final write
        texts = [c.args[1]["text"] for c in channel.partial_update_message.await_args_list]
        assert texts == ["xxx", "xxxxxx", "xxxxxxxxx", "x" * 10]

    @pytest.mark.asyncio
    async def test_failed_intermediate_update_is_skipped(
        self, coordinator, channel, clock, event_stream
    ):
        """A failing partial update does not end the run."""
        channel.partial_update_message.side_effect = [Exception("rate limited"), None]

        def advance(event):
            clock.advance(2.0)

        await coordinator.run(
            event_stream(
                [TextDelta(text="a"), MessageCompleted(text="a")], before_each=advance
            )
        )

        assert channel.partial_update_message.await_count == 2
        assert coordinator.outcome == CoordinatorState.COMPLETED

    @pytest.mark.asyncio
    async def test_completion_without_text_uses_buffer(
        self, coordinator, channel, event_stream
    ):
        await coordinator.run(
            event_stream([TextDelta(text="abc"), MessageCompleted(text=None)])
        )

        channel.partial_update_message.assert_awaited_once_with(
            MESSAGE_ID, {"text": "abc"}
        )
        assert coordinator.outcome == CoordinatorState.COMPLETED

    @pytest.mark.asyncio
    async def test_stream_ending_without_completion_finalizes(
        self, coordinator, channel, on_dispose, event_stream
    ):
        await coordinator.run(event_stream([TextDelta(text="partial")]))

        channel.partial_update_message.assert_awaited_once_with(
            MESSAGE_ID, {"text": "partial"}
        )
        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()

    @pytest.mark.asyncio
    async def test_message_creation_step_sends_generating(self, coordinator, channel):
        await coordinator.handle_stream_event(RunStepCreated(step_type="message_creation"))

        channel.send_event.assert_awaited_once_with(GENERATING_EVENT)

    @pytest.mark.asyncio
    async def test_other_step_types_are_ignored(self, coordinator, channel):
        await coordinator.handle_stream_event(RunStepCreated(step_type="tool_calls"))

        channel.send_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stream_error(self, coordinator, channel, on_dispose):
        """An exception from the stream is reported on the message."""

        async def failing_stream():
            yield TextDelta(text="partial")
            raise RuntimeError("connection reset")

        await coordinator.run(failing_stream())

        channel.send_event.assert_awaited_once_with(ERROR_EVENT)
        channel.partial_update_message.assert_awaited_once_with(
            MESSAGE_ID, {"text": "connection reset"}
        )
        on_dispose.assert_called_once()
        assert coordinator.outcome == CoordinatorState.ERRORED

    @pytest.mark.asyncio
    async def test_stream_error_without_description(self, coordinator, channel):
        async def failing_stream():
            raise RuntimeError()
            yield  # pragma: no cover

        await coordinator.run(failing_stream())

        channel.partial_update_message.assert_awaited_once_with(
            MESSAGE_ID, {"text": "Error generating the message"}
        )

    @pytest.mark.asyncio
    async def test_run_failed_event(self, coordinator, channel, event_stream):
        await coordinator.run(
            event_stream([RunCreated(run_id="R1"), RunFailed(message="Rate limit exceeded")])
        )

        channel.send_event.assert_awaited_once_with(ERROR_EVENT)
        channel.partial_update_message.assert_awaited_once_with(
            MESSAGE_ID, {"text": "Rate limit exceeded"}
        )
        assert coordinator.outcome == CoordinatorState.ERRORED

    @pytest.mark.asyncio
    async def test_error_reporting_failure_still_disposes(
        self, coordinator, channel, on_dispose
    ):
        channel.send_event.side_effect = Exception("channel down")
        channel.partial_update_message.side_effect = Exception("channel down")

        async def failing_stream():
            raise RuntimeError("boom")
            yield  # pragma: no cover

        await coordinator.run(failing_stream())

        on_dispose.assert_called_once()
        assert coordinator.is_disposed is True

    @pytest.mark.asyncio
    async def test_failed_final_update_becomes_error(
        self, coordinator, channel, event_stream
    ):
        channel.partial_update_message.side_effect = [Exception("server error"), None]

        await coordinator.run(event_stream([MessageCompleted(text="done")]))

        channel.send_event.assert_awaited_once_with(ERROR_EVENT)
        assert channel.partial_update_message.await_args_list[-1] == call(
            MESSAGE_ID, {"text": "server error"}
        )
        assert coordinator.outcome == CoordinatorState.ERRORED

    @pytest.mark.asyncio
    async def test_dispose_is_idempotent(self, coordinator, signals, on_dispose):
        await coordinator.dispose()
        await coordinator.dispose()

        on_dispose.assert_called_once()
        assert signals.handler_count(STOP_GENERATING_EVENT) == 0
        assert coordinator.state == CoordinatorState.DISPOSED

    @pytest.mark.asyncio
    async def test_on_dispose_failure_is_contained(self, coordinator, on_dispose):
        on_dispose.side_effect = RuntimeError("registry gone")

        await coordinator.dispose()

        assert coordinator.is_disposed is True

    @pytest.mark.asyncio
    async def test_events_after_dispose_are_ignored(self, coordinator, channel):
        await coordinator.dispose()

        await coordinator.handle_stream_event(TextDelta(text="late"))
        await coordinator.handle_stream_event(MessageCompleted(text="late"))
        await coordinator.handle_error(RuntimeError("late"))

        assert coordinator.message.text == ""
        channel.partial_update_message.assert_not_awaited()
        channel.send_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_only_once(self, coordinator, channel, event_stream):
        await coordinator.run(event_stream([MessageCompleted(text="one")]))
        channel.reset_mock()

        await coordinator.run(event_stream([MessageCompleted(text="two")]))

        channel.partial_update_message.assert_not_awaited()
        assert coordinator.message.text == "one"


class TestStopGenerating:
    """Tests for the stop signal path."""

    @pytest.fixture
    def on_dispose(self):
        return MagicMock()

    @pytest.fixture
    def coordinator(self, backend, channel, signals, on_dispose, clock):
        return ResponseStreamCoordinator(
            backend=backend,
            channel=channel,
            signals=signals,
            message=TargetMessage(id=MESSAGE_ID, cid=CID),
            on_dispose=on_dispose,
            update_interval=1.0,
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_stop_cancels_run(
        self, coordinator, backend, channel, signals, on_dispose
    ):
        await coordinator.handle_stream_event(RunCreated(run_id="R1"))

        await signals.emit(STOP_GENERATING_EVENT, stop_event())

        backend.cancel_run.assert_awaited_once_with("R1")
        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()
        assert coordinator.outcome == CoordinatorState.CANCELLED

    @pytest.mark.asyncio
    async def test_stop_for_other_message_is_ignored(
        self, coordinator, backend, channel, signals, on_dispose
    ):
        await coordinator.handle_stream_event(RunCreated(run_id="R1"))

        await signals.emit(STOP_GENERATING_EVENT, stop_event("msg-2"))

        backend.cancel_run.assert_not_awaited()
        channel.send_event.assert_not_awaited()
        on_dispose.assert_not_called()
        assert coordinator.is_disposed is False

    @pytest.mark.asyncio
    async def test_stop_after_dispose_is_ignored(
        self, coordinator, backend, channel, on_dispose
    ):
        await coordinator.handle_stream_event(RunCreated(run_id="R1"))
        await coordinator.dispose()
        on_dispose.reset_mock()

        await coordinator.handle_stop_generating(stop_event())

        backend.cancel_run.assert_not_awaited()
        channel.send_event.assert_not_awaited()
        on_dispose.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_failure_still_clears(
        self, coordinator, backend, channel, signals, on_dispose
    ):
        backend.cancel_run.side_effect = Exception("Cannot cancel run with status 'completed'")
        await coordinator.handle_stream_event(RunCreated(run_id="R1"))

        await signals.emit(STOP_GENERATING_EVENT, stop_event())

        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()

    @pytest.mark.asyncio
    async def test_stop_before_run_created(
        self, coordinator, backend, channel, signals, on_dispose
    ):
        """Without a run id there is nothing to cancel, but the run still ends."""
        await signals.emit(STOP_GENERATING_EVENT, stop_event())

        backend.cancel_run.assert_not_awaited()
        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()
        assert coordinator.outcome == CoordinatorState.CANCELLED

    @pytest.mark.asyncio
    async def test_dispose_during_cancel_call(self, coordinator, backend, channel):
        """No indicator is sent if disposal happened while cancelling."""

        async def cancel_and_finish(run_id):
            await coordinator.dispose()

        backend.cancel_run.side_effect = cancel_and_finish
        await coordinator.handle_stream_event(RunCreated(run_id="R1"))

        await coordinator.handle_stop_generating(stop_event())

        channel.send_event.assert_not_awaited()
        assert coordinator.outcome is None

    @pytest.mark.asyncio
    async def test_stop_while_streaming(self, coordinator, channel, signals, on_dispose):
        """Events after a stop are not applied."""

        async def stream():
            yield RunCreated(run_id="R1")
            yield TextDelta(text="Hel")
            await signals.emit(STOP_GENERATING_EVENT, stop_event())
            yield TextDelta(text="lo")
            yield MessageCompleted(text="Hello")

        await coordinator.run(stream())

        assert coordinator.message.text == "Hel"
        channel.partial_update_message.assert_not_awaited()
        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()
        assert coordinator.outcome == CoordinatorState.CANCELLED

    @pytest.mark.asyncio
    async def test_task_cancellation_disposes(self, coordinator, on_dispose):
        never = asyncio.Event()

        async def stream():
            yield RunCreated(run_id="R1")
            await never.wait()
            yield MessageCompleted(text="unreachable")  # pragma: no cover

        task = asyncio.create_task(coordinator.run(stream()))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        on_dispose.assert_called_once()
        assert coordinator.is_disposed is True

    @pytest.mark.asyncio
    async def test_stream_is_closed_after_stop(self, coordinator, signals):
        """Leaving the stream early still runs its cleanup."""
        closed = []

        async def stream():
            try:
                yield RunCreated(run_id="R1")
                await signals.emit(STOP_GENERATING_EVENT, stop_event())
                yield TextDelta(text="late")
                yield MessageCompleted(text="late")
            finally:
                closed.append(True)

        await coordinator.run(stream())

        assert coordinator.outcome == CoordinatorState.CANCELLED
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_stream_is_closed_after_error(self, coordinator):
        closed = []

        async def stream():
            try:
                yield RunFailed(message="Rate limit reached")
                yield TextDelta(text="late")
            finally:
                closed.append(True)

        await coordinator.run(stream())

        assert coordinator.outcome == CoordinatorState.ERRORED
        assert closed == [True]

    @pytest.mark.asyncio
    async def test_external_stop_cancels_stalled_stream(
        self, coordinator, backend, channel, signals, on_dispose
    ):
        """A stop from another task ends a run whose stream never yields again."""
        never = asyncio.Event()
        closed = []

        async def stream():
            try:
                yield RunCreated(run_id="R1")
                await never.wait()
                yield MessageCompleted(text="unreachable")  # pragma: no cover
            finally:
                closed.append(True)

        task = asyncio.create_task(coordinator.run(stream()))
        await asyncio.sleep(0.01)

        await signals.emit(STOP_GENERATING_EVENT, stop_event())

        with pytest.raises(asyncio.CancelledError):
            await task

        backend.cancel_run.assert_awaited_once_with("R1")
        channel.send_event.assert_awaited_once_with(CLEAR_EVENT)
        on_dispose.assert_called_once()
        assert coordinator.outcome == CoordinatorState.CANCELLED
        assert closed == [True]
