"""Streaming chat completion over LiteLLM with an auto-invoke tool loop.

Every generation stage talks to the model through ``CompletionClient``.
When the options carry a ``FileFunctions`` capability, its tools are
offered to the model; tool calls the model makes are executed locally and
the conversation continues until the model answers without tool calls or
the round limit is hit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import litellm

from ..core.config import settings
from .file_tools import FileFunctions
from .model_config import get_max_tokens

logger = logging.getLogger("repowiki.generation.llm_client")


class ToolLoopExceededError(RuntimeError):
    """The model kept requesting tools past the configured round limit."""


@dataclass
class TokenUsage:
    """Token counters accumulated across every round of one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0

    def add(self, usage: Any) -> None:
        if usage is None:
            return
        self.prompt_tokens += int(getattr(usage, "prompt_tokens", 0) or 0)
        self.completion_tokens += int(getattr(usage, "completion_tokens", 0) or 0)


@dataclass
class ChatOptions:
    """Per-call settings. ``max_tokens`` defaults to the model's output limit."""

    model: str
    temperature: float = 0.5
    max_tokens: int | None = None
    tools: FileFunctions | None = None
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class ChatResult:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


def user_message(content: str) -> dict[str, str]:
    return {"role": "user", "content": content}


class CompletionClient:
    """Thin async wrapper around ``litellm.acompletion``.

    Args:
        api_key: Provider key; defaults to ``settings.chat_api_key``.
        api_base: Custom endpoint; defaults to ``settings.chat_api_base``.
        timeout: Seconds per request; defaults to ``settings.llm_timeout``.
        max_tool_rounds: Tool round trips allowed per completion.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        timeout: int | None = None,
        max_tool_rounds: int | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.chat_api_key
        self.api_base = api_base if api_base is not None else settings.chat_api_base
        self.timeout = timeout if timeout is not None else settings.llm_timeout
        self.max_tool_rounds = (
            max_tool_rounds if max_tool_rounds is not None else settings.max_tool_rounds
        )

    def _request_kwargs(self, messages: list[dict], options: ChatOptions) -> dict:
        kwargs: dict = {
            "model": options.model,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens or get_max_tokens(options.model),
            "timeout": self.timeout,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if options.tools is not None:
            kwargs["tools"] = options.tools.tool_schemas()
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def _stream_rounds(
        self, history: list[dict], options: ChatOptions
    ) -> AsyncIterator[tuple[int, str]]:
        """Yield ``(round, delta)`` pairs; round 0 is the first request.

        Every later round opens with an empty delta so callers see the
        round change even when that round writes no text.
        """
        messages = list(history)
        rounds = 0

        while True:
            if rounds:
                yield rounds, ""
            response = await litellm.acompletion(**self._request_kwargs(messages, options))

            chunks = []
            async for chunk in response:
                chunks.append(chunk)
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                text = getattr(delta, "content", None) if delta is not None else None
                if text:
                    yield rounds, text

            full = litellm.stream_chunk_builder(chunks, messages=messages)
            if full is None:
                return
            options.usage.add(getattr(full, "usage", None))

            message = full.choices[0].message
            tool_calls = getattr(message, "tool_calls", None) or []
            if not tool_calls or options.tools is None:
                return

            rounds += 1
            if rounds > self.max_tool_rounds:
                raise ToolLoopExceededError(
                    f"Model requested tools for more than {self.max_tool_rounds} rounds"
                )

            messages.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.function.name,
                            "arguments": call.function.arguments,
                        },
                    }
                    for call in tool_calls
                ],
            })
            for call in tool_calls:
                # File reads block; keep them off the event loop.
                result = await asyncio.to_thread(
                    options.tools.invoke, call.function.name, call.function.arguments
                )
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.function.name,
                    "content": result,
                })

    async def stream_chat(
        self, history: list[dict], options: ChatOptions
    ) -> AsyncIterator[str]:
        """Yield text deltas as they arrive, running tool calls in between.

        Text the model writes in rounds that end with tool calls (for
        example "let me read the files first") is yielded too.

        Raises:
            ToolLoopExceededError: more than ``max_tool_rounds`` tool rounds.
            Exception: whatever LiteLLM raises for transport or provider errors.
        """
        async for _, text in self._stream_rounds(history, options):
            if text:
                yield text

    async def complete(self, history: list[dict], options: ChatOptions) -> ChatResult:
        """Collect the answer of the final, tool-free round into one string."""
        parts: list[str] = []
        current = 0
        async for round_number, delta in self._stream_rounds(history, options):
            if round_number != current:
                current = round_number
                parts = []
            parts.append(delta)
        return ChatResult(
            text="".join(parts),
            prompt_tokens=options.usage.prompt_tokens,
            completion_tokens=options.usage.completion_tokens,
        )
