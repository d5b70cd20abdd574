"""
Model output limits.

Single source of truth for how many tokens a completion may produce per
model. Providers reject requests whose max_tokens exceeds their limit, and
litellm's registry is often wrong for proxied models, so known models are
listed here and everything else falls back to litellm, then to 16384.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger("repowiki.generation")

DEFAULT_MAX_OUTPUT_TOKENS = 16_384


@dataclass(frozen=True)
class ModelConfig:
    """Constraints for a specific LLM model."""

    max_output_tokens: int
    supports_tool_calling: bool = True

    def __str__(self) -> str:
        return (
            f"out={self.max_output_tokens:,} "
            f"tools={'yes' if self.supports_tool_calling else 'no'}"
        )


# Keys are the model identifier WITHOUT the provider prefix.
MODEL_OVERRIDES: dict[str, ModelConfig] = {
    "DeepSeek-V3": ModelConfig(max_output_tokens=16_384),
    "deepseek-chat": ModelConfig(max_output_tokens=8_192),
    "QwQ-32B": ModelConfig(max_output_tokens=8_192),
    "gpt-4.1-mini": ModelConfig(max_output_tokens=32_768),
    "gpt-4.1": ModelConfig(max_output_tokens=32_768),
    "gpt-4o": ModelConfig(max_output_tokens=16_384),
    "o4-mini": ModelConfig(max_output_tokens=100_000),
    "o3-mini": ModelConfig(max_output_tokens=100_000),
    "qwen3-coder:30b": ModelConfig(max_output_tokens=8_192),
}

_DEFAULT_CONFIG = ModelConfig(max_output_tokens=DEFAULT_MAX_OUTPUT_TOKENS)


def _strip_provider_prefix(model: str) -> str:
    """Strip provider routing prefixes like 'openrouter/' or 'openai/'.

    Examples:
        'openai/gpt-4.1'             → 'gpt-4.1'
        'openrouter/openai/gpt-4o'   → 'gpt-4o'
        'ollama/qwen3-coder:30b'     → 'qwen3-coder:30b'
    """
    PROVIDER_PREFIXES = (
        "openrouter/", "openai/", "deepseek/", "ollama/", "ollama_chat/",
        "litellm_proxy/", "hosted_vllm/",
    )
    stripped = True
    while stripped:
        stripped = False
        for prefix in PROVIDER_PREFIXES:
            if model.startswith(prefix):
                model = model[len(prefix):]
                stripped = True
    return model


def resolve_model_config(model: str) -> ModelConfig:
    """Resolve the output limit for a model.

    Resolution order:
    1. Override table (exact match after stripping provider prefixes)
    2. litellm's model registry
    3. The 16384-token default
    """
    bare = _strip_provider_prefix(model)
    if bare in MODEL_OVERRIDES:
        return MODEL_OVERRIDES[bare]

    try:
        import litellm
        info = litellm.get_model_info(model)
        out = info.get("max_output_tokens") if info else None
        if out:
            return ModelConfig(
                max_output_tokens=int(out),
                supports_tool_calling=bool(info.get("supports_function_calling", True)),
            )
    except Exception as e:
        # litellm raises a bare Exception for unmapped models
        logger.debug("litellm lookup failed for '%s': %s", model, e)

    return _DEFAULT_CONFIG


def get_max_tokens(model: str) -> int:
    return resolve_model_config(model).max_output_tokens
