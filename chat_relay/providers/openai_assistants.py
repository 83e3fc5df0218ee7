# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""OpenAI Assistants generation backend.

Streams a run on an assistant thread and translates the SDK's
``AssistantStreamEvent`` objects into relay stream events. Function calls
requested by the run are executed with the configured tools and their
outputs are submitted back, continuing on the resumed stream.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

from langchain_core.tools import BaseTool
from openai import AsyncOpenAI

from chat_relay.core.config import settings
from chat_relay.services.streaming.events import (
    MessageCompleted,
    RunCreated,
    RunFailed,
    RunStepCreated,
    StreamEvent,
    TextDelta,
)

logger = logging.getLogger(__name__)


def translate_event(event: Any) -> Optional[StreamEvent]:
    """Translate one SDK stream event, None for events the relay ignores."""
    kind = getattr(event, "event", None)
    data = getattr(event, "data", None)

    if kind == "thread.run.created":
        return RunCreated(run_id=data.id)

    if kind == "thread.message.delta":
        content = data.delta.content or []
        part = content[0] if content else None
        if part is not None and part.type == "text" and part.text:
            return TextDelta(text=part.text.value or "")
        return None

    if kind == "thread.message.completed":
        content = data.content or []
        part = content[0] if content else None
        if part is not None and part.type == "text":
            return MessageCompleted(text=part.text.value)
        return MessageCompleted(text=None)

    if kind == "thread.run.step.created":
        return RunStepCreated(step_type=data.step_details.type)

    if kind == "thread.run.failed":
        last_error = getattr(data, "last_error", None)
        return RunFailed(message=last_error.message if last_error else "Run failed")

    if kind == "thread.run.expired":
        return RunFailed(message="Run expired")

    if kind == "error":
        return RunFailed(message=getattr(data, "message", "") or "")

    return None


class OpenAIAssistantBackend:
    """Generation backend bound to one OpenAI assistant thread."""

    def __init__(
        self,
        client: AsyncOpenAI,
        thread_id: str,
        tools: Optional[list[BaseTool]] = None,
    ):
        self._client = client
        self._thread_id = thread_id
        self._tools = {tool.name: tool for tool in tools or []}

    @property
    def thread_id(self) -> str:
        return self._thread_id

    async def cancel_run(self, run_id: str) -> Any:
        """Cancel a run on the bound thread."""
        logger.info(
            "[OpenAIAssistantBackend] Cancelling run %s on thread %s",
            run_id,
            self._thread_id,
        )
        return await self._client.beta.threads.runs.cancel(
            run_id=run_id, thread_id=self._thread_id
        )

    async def stream_run(
        self, assistant_id: str, **run_params: Any
    ) -> AsyncIterator[StreamEvent]:
        """Start a streamed run and yield translated events."""
        async with self._client.beta.threads.runs.stream(
            thread_id=self._thread_id, assistant_id=assistant_id, **run_params
        ) as stream:
            async for event in self._consume(stream):
                yield event

    async def _consume(self, stream: Any) -> AsyncIterator[StreamEvent]:
        async for raw_event in stream:
            if getattr(raw_event, "event", None) == "thread.run.requires_action":
                async for event in self._submit_tool_outputs(raw_event.data):
                    yield event
                continue

            event = translate_event(raw_event)
            if event is not None:
                yield event

    async def _submit_tool_outputs(self, run: Any) -> AsyncIterator[StreamEvent]:
        required_action = getattr(run, "required_action", None)
        if required_action is None or required_action.type != "submit_tool_outputs":
            logger.warning(
                "[OpenAIAssistantBackend] Run %s requires unsupported action", run.id
            )
            return

        tool_outputs = []
        for tool_call in required_action.submit_tool_outputs.tool_calls:
            output = await self._execute_tool_call(
                tool_call.function.name, tool_call.function.arguments
            )
            tool_outputs.append({"tool_call_id": tool_call.id, "output": output})

        async with self._client.beta.threads.runs.submit_tool_outputs_stream(
            run_id=run.id, thread_id=self._thread_id, tool_outputs=tool_outputs
        ) as stream:
            async for event in self._consume(stream):
                yield event

    async def _execute_tool_call(self, name: str, arguments: str) -> str:
        """Run one function call; failures become JSON error outputs."""
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("[OpenAIAssistantBackend] Unknown tool requested: %s", name)
            return json.dumps({"error": f"Unknown tool: {name}"})

        try:
            args = json.loads(arguments or "{}")
        except json.JSONDecodeError:
            logger.warning(
                "[OpenAIAssistantBackend] Invalid arguments for tool %s: %s",
                name,
                arguments[:200],
            )
            return json.dumps({"error": f"Invalid arguments for tool: {name}"})

        logger.info("[OpenAIAssistantBackend] Executing tool %s", name)
        try:
            result = await tool.ainvoke(args)
        except Exception as e:
            logger.exception("[OpenAIAssistantBackend] Tool %s failed", name)
            return json.dumps({"error": f"Tool {name} failed: {e}"})
        return result if isinstance(result, str) else json.dumps(result)


def create_assistant_backend(
    thread_id: str,
    tools: Optional[list[BaseTool]] = None,
    client: Optional[AsyncOpenAI] = None,
) -> OpenAIAssistantBackend:
    """Build a backend using the configured OpenAI credential."""
    if client is None:
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return OpenAIAssistantBackend(client=client, thread_id=thread_id, tools=tools)
