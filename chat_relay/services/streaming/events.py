# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Stream event protocol between generation backends and the coordinator.

Backends translate their SDK events into these dataclasses; the coordinator
never sees SDK types.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class StreamEventType(str, Enum):
    """Kinds of events a generation backend emits."""

    RUN_CREATED = "run_created"
    TEXT_DELTA = "text_delta"
    MESSAGE_COMPLETED = "message_completed"
    RUN_STEP_CREATED = "run_step_created"
    RUN_FAILED = "run_failed"


# Step type reported when the backend starts writing the message body
STEP_MESSAGE_CREATION = "message_creation"


@dataclass
class RunCreated:
    run_id: str
    type: StreamEventType = StreamEventType.RUN_CREATED


@dataclass
class TextDelta:
    text: str
    type: StreamEventType = StreamEventType.TEXT_DELTA


@dataclass
class MessageCompleted:
    """Final message content.

    ``text`` is None when the completed content is not text.
    """

    text: Optional[str] = None
    type: StreamEventType = StreamEventType.MESSAGE_COMPLETED


@dataclass
class RunStepCreated:
    step_type: str
    type: StreamEventType = StreamEventType.RUN_STEP_CREATED


@dataclass
class RunFailed:
    message: str = ""
    type: StreamEventType = StreamEventType.RUN_FAILED


StreamEvent = Union[RunCreated, TextDelta, MessageCompleted, RunStepCreated, RunFailed]


@dataclass
class GenerationRun:
    """One backend run bound to a coordinator."""

    run_id: str = ""
    done: bool = False
    last_flush: float = 0.0


@dataclass
class TargetMessage:
    """The chat message being written incrementally."""

    id: str
    cid: str
    text: str = ""
    chunk_counter: int = 0

    def append(self, delta: str) -> None:
        """Append a text delta and count it."""
        self.text += delta
        self.chunk_counter += 1
