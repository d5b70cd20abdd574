"""Tests for per-model output limits."""

from unittest.mock import patch

from repowiki.generation.model_config import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    ModelConfig,
    _strip_provider_prefix,
    get_max_tokens,
    resolve_model_config,
)


class TestStripProviderPrefix:

    def test_nested_prefixes(self):
        assert _strip_provider_prefix("openrouter/openai/gpt-4o") == "gpt-4o"

    def test_ollama_tag_kept(self):
        assert _strip_provider_prefix("ollama/qwen3-coder:30b") == "qwen3-coder:30b"

    def test_unprefixed_unchanged(self):
        assert _strip_provider_prefix("deepseek-chat") == "deepseek-chat"


class TestResolveModelConfig:

    def test_override_wins(self):
        with patch("litellm.get_model_info") as info:
            assert get_max_tokens("openai/gpt-4.1") == 32_768
        info.assert_not_called()

    def test_falls_back_to_litellm_registry(self):
        with patch("litellm.get_model_info", return_value={
            "max_output_tokens": 4096, "supports_function_calling": False,
        }):
            config = resolve_model_config("some/new-model")
        assert config == ModelConfig(max_output_tokens=4096, supports_tool_calling=False)

    def test_unknown_model_uses_default(self):
        with patch("litellm.get_model_info", side_effect=Exception("not mapped")):
            assert get_max_tokens("mystery-model") == DEFAULT_MAX_OUTPUT_TOKENS

    def test_registry_without_limit_uses_default(self):
        with patch("litellm.get_model_info", return_value={"max_output_tokens": None}):
            assert get_max_tokens("mystery-model") == DEFAULT_MAX_OUTPUT_TOKENS
