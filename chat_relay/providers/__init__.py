# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""Generation backends."""

from .openai_assistants import (
    OpenAIAssistantBackend,
    create_assistant_backend,
    translate_event,
)

__all__ = ["OpenAIAssistantBackend", "create_assistant_backend", "translate_event"]
