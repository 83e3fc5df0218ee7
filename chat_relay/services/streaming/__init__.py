# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Streaming services for the chat relay."""

from .coordinator import CoordinatorState, GenerationBackend, ResponseStreamCoordinator
from .events import (
    GenerationRun,
    MessageCompleted,
    RunCreated,
    RunFailed,
    RunStepCreated,
    StreamEvent,
    StreamEventType,
    TargetMessage,
    TextDelta,
)
from .registry import CoordinatorRegistry

__all__ = [
    "CoordinatorRegistry",
    "CoordinatorState",
    "GenerationBackend",
    "ResponseStreamCoordinator",
    "GenerationRun",
    "MessageCompleted",
    "RunCreated",
    "RunFailed",
    "RunStepCreated",
    "StreamEvent",
    "StreamEventType",
    "TargetMessage",
    "TextDelta",
]
