"""Static model table for SAP AI Core hosted models."""

from __future__ import annotations

from aicore_llm.types import ModelInfo, ModelSelection

DEFAULT_MODEL_ID = "anthropic--claude-3.5-sonnet"

SAP_AI_CORE_MODELS: dict[str, ModelInfo] = {
    "anthropic--claude-3.7-sonnet": ModelInfo(
        max_tokens=64_000,
        context_window=200_000,
        supports_images=True,
    ),
    "anthropic--claude-3.5-sonnet": ModelInfo(
        max_tokens=8192,
        context_window=200_000,
        supports_images=True,
    ),
    "anthropic--claude-3-sonnet": ModelInfo(
        max_tokens=4096,
        context_window=200_000,
        supports_images=True,
    ),
    "anthropic--claude-3-haiku": ModelInfo(
        max_tokens=4096,
        context_window=200_000,
        supports_images=True,
    ),
    "anthropic--claude-3-opus": ModelInfo(
        max_tokens=4096,
        context_window=200_000,
        supports_images=True,
    ),
    "gpt-4o": ModelInfo(
        max_tokens=4096,
        context_window=128_000,
        supports_images=True,
    ),
    "gpt-4o-mini": ModelInfo(
        max_tokens=4096,
        context_window=128_000,
        supports_images=True,
    ),
    "gpt-4": ModelInfo(
        max_tokens=4096,
        context_window=8192,
    ),
    "o1": ModelInfo(
        max_tokens=100_000,
        context_window=200_000,
        supports_images=True,
        description="Reasoning model; does not support streaming on AI Core.",
    ),
    "o3-mini": ModelInfo(
        max_tokens=100_000,
        context_window=200_000,
        description="Reasoning model; does not support streaming on AI Core.",
    ),
    "gemini-1.5-pro": ModelInfo(
        max_tokens=8192,
        context_window=2_000_000,
        supports_images=True,
    ),
    "gemini-1.5-flash": ModelInfo(
        max_tokens=8192,
        context_window=1_000_000,
        supports_images=True,
    ),
}


def select_model(model_id: str | None) -> ModelSelection:
    """Return the configured model id with its limits.

    Models missing from the table (e.g. newly discovered ones) keep their id
    but borrow the default model's limits.
    """
    model_id = model_id or DEFAULT_MODEL_ID
    info = SAP_AI_CORE_MODELS.get(model_id, SAP_AI_CORE_MODELS[DEFAULT_MODEL_ID])
    return ModelSelection(id=model_id, info=info)
