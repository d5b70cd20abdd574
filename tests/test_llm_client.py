"""Tests for the streaming completion client and its tool loop.

litellm is patched at the module boundary; chunks and rebuilt responses
are plain namespaces with the attributes the client reads.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from repowiki.generation.file_tools import FileFunctions, FileReadLog
from repowiki.generation.llm_client import (
    ChatOptions,
    CompletionClient,
    ToolLoopExceededError,
    user_message,
)


def _chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def _stream(*texts):
    async def gen():
        for text in texts:
            yield _chunk(text)
        # final usage-only chunk
        yield SimpleNamespace(choices=[])

    return gen()


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(
        id=call_id,
        function=SimpleNamespace(name=name, arguments=json.dumps(arguments)),
    )


def _full(content="", tool_calls=None, prompt_tokens=5, completion_tokens=3):
    return SimpleNamespace(
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
        choices=[SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls))],
    )


def _client(**kwargs):
    kwargs.setdefault("api_key", "")
    kwargs.setdefault("api_base", "")
    kwargs.setdefault("timeout", 30)
    kwargs.setdefault("max_tool_rounds", 3)
    return CompletionClient(**kwargs)


class TestComplete:

    def test_concatenates_stream_and_counts_usage(self):
        acompletion = AsyncMock(return_value=_stream("Hel", "lo"))
        builder = MagicMock(return_value=_full("Hello", prompt_tokens=7, completion_tokens=2))

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion), \
                patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder):
            result = asyncio.run(_client().complete([user_message("hi")], ChatOptions(model="gpt-4o")))

        assert result.text == "Hello"
        assert (result.prompt_tokens, result.completion_tokens) == (7, 2)

        kwargs = acompletion.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["stream_options"] == {"include_usage": True}
        assert kwargs["max_tokens"] == 16_384
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert "tools" not in kwargs
        assert "api_key" not in kwargs

    def test_passes_credentials_and_explicit_max_tokens(self):
        acompletion = AsyncMock(return_value=_stream("x"))
        builder = MagicMock(return_value=_full("x"))

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion), \
                patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder):
            asyncio.run(_client(api_key="k", api_base="http://proxy").complete(
                [user_message("hi")], ChatOptions(model="m", max_tokens=100, temperature=0.2),
            ))

        kwargs = acompletion.call_args.kwargs
        assert kwargs["api_key"] == "k"
        assert kwargs["api_base"] == "http://proxy"
        assert kwargs["max_tokens"] == 100
        assert kwargs["temperature"] == 0.2

    def test_runs_tool_calls_then_returns_final_answer(self, checkout):
        read_log = FileReadLog()
        tools = FileFunctions(str(checkout), read_log)
        acompletion = AsyncMock(side_effect=[_stream(), _stream("Done")])
        builder = MagicMock(side_effect=[
            _full(tool_calls=[_tool_call("call_1", "read_file", {"path": "setup.cfg"})]),
            _full("Done"),
        ])

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion), \
                patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder):
            result = asyncio.run(_client().complete(
                [user_message("document it")], ChatOptions(model="gpt-4o", tools=tools),
            ))

        assert result.text == "Done"
        assert (result.prompt_tokens, result.completion_tokens) == (10, 6)
        assert read_log.paths == ["setup.cfg"]

        first_kwargs = acompletion.call_args_list[0].kwargs
        assert first_kwargs["tool_choice"] == "auto"
        assert [t["function"]["name"] for t in first_kwargs["tools"]] == [
            "read_file", "read_files", "read_file_lines",
        ]

        second_messages = acompletion.call_args_list[1].kwargs["messages"]
        assert [m["role"] for m in second_messages] == ["user", "assistant", "tool"]
        assert second_messages[1]["tool_calls"][0]["id"] == "call_1"
        assert second_messages[2]["tool_call_id"] == "call_1"
        assert "name = widgets" in second_messages[2]["content"]

    def test_tool_calls_ignored_without_tools(self):
        acompletion = AsyncMock(return_value=_stream("text"))
        builder = MagicMock(return_value=_full(
            "text", tool_calls=[_tool_call("c", "read_file", {"path": "x"})],
        ))

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion), \
                patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder):
            result = asyncio.run(_client().complete([user_message("hi")], ChatOptions(model="m")))

        assert result.text == "text"
        assert acompletion.await_count == 1

    def test_tool_loop_limit(self, checkout):
        tools = FileFunctions(str(checkout))
        acompletion = AsyncMock(side_effect=lambda **kwargs: _stream())
        builder = MagicMock(side_effect=lambda chunks, messages: _full(
            tool_calls=[_tool_call("c", "read_file", {"path": "setup.cfg"})],
        ))

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion), \
                patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder):
            with pytest.raises(ToolLoopExceededError):
                asyncio.run(_client(max_tool_rounds=2).complete(
                    [user_message("hi")], ChatOptions(model="m", tools=tools),
                ))

        assert acompletion.await_count == 3

    def test_provider_error_propagates(self):
        acompletion = AsyncMock(side_effect=RuntimeError("rate limited"))

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion):
            with pytest.raises(RuntimeError, match="rate limited"):
                asyncio.run(_client().complete([user_message("hi")], ChatOptions(model="m")))

    def test_stream_chat_yields_deltas(self):
        acompletion = AsyncMock(return_value=_stream("a", "", "b"))
        builder = MagicMock(return_value=_full("ab"))

        async def collect():
            return [d async for d in _client().stream_chat([user_message("hi")], ChatOptions(model="m"))]

        with patch("repowiki.generation.llm_client.litellm.acompletion", acompletion), \
                patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder):
            assert asyncio.run(collect()) == ["a", "b"]


class TestInterimRoundText:

    def _patches(self, final_texts):
        acompletion = AsyncMock(side_effect=[
            _stream("Let me read the files first. "),
            _stream(*final_texts),
        ])
        builder = MagicMock(side_effect=[
            _full("Let me read the files first. ",
                  tool_calls=[_tool_call("call_1", "read_file", {"path": "setup.cfg"})]),
            _full("".join(final_texts)),
        ])
        return (
            patch("repowiki.generation.llm_client.litellm.acompletion", acompletion),
            patch("repowiki.generation.llm_client.litellm.stream_chunk_builder", builder),
        )

    def test_complete_keeps_only_final_round(self, checkout):
        tools = FileFunctions(str(checkout))
        acompletion, builder = self._patches(["<blog>", "Body", "</blog>"])
        with acompletion, builder:
            result = asyncio.run(_client().complete(
                [user_message("write")], ChatOptions(model="m", tools=tools),
            ))
        assert result.text == "<blog>Body</blog>"

    def test_silent_final_round_gives_empty_answer(self, checkout):
        tools = FileFunctions(str(checkout))
        acompletion, builder = self._patches([])
        with acompletion, builder:
            result = asyncio.run(_client().complete(
                [user_message("write")], ChatOptions(model="m", tools=tools),
            ))
        assert result.text == ""

    def test_stream_chat_includes_interim_text(self, checkout):
        tools = FileFunctions(str(checkout))
        acompletion, builder = self._patches(["Body"])

        async def collect():
            return [d async for d in _client().stream_chat(
                [user_message("write")], ChatOptions(model="m", tools=tools),
            )]

        with acompletion, builder:
            assert asyncio.run(collect()) == ["Let me read the files first. ", "Body"]
