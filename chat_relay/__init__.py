# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Chat relay - streams AI generated replies into a chat platform.

This package provides:

- ResponseStreamCoordinator: binds one generation run to one chat message,
  writing throttled partial updates and AI indicator events
- CoordinatorRegistry: tracks active coordinators by message id
- SignalHub: local emitter delivering the chat client's stop signal
- OpenAIAssistantBackend: OpenAI Assistants run streaming and cancellation
- WebSearchTool: web search side-tool for runs

Usage:
    from chat_relay import CoordinatorRegistry, SignalHub, TargetMessage

    registry = CoordinatorRegistry(SignalHub())
    coordinator = registry.create(backend, channel, TargetMessage(id=..., cid=...))
    registry.start(coordinator, backend.stream_run(assistant_id))
"""

__version__ = "1.0.0"

from .channels import SignalHub
from .services.streaming import (
    CoordinatorRegistry,
    ResponseStreamCoordinator,
    TargetMessage,
)

__all__ = [
    "__version__",
    "CoordinatorRegistry",
    "ResponseStreamCoordinator",
    "SignalHub",
    "TargetMessage",
]
