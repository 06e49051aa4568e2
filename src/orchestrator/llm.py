"""LLM facade: resolve the configured backend name into a provider."""

from __future__ import annotations

import logging

from dotenv import load_dotenv

from .providers import (
    AnthropicProvider,
    BedrockProvider,
    GeminiProvider,
    LLMProvider,
    MockProvider,
    OllamaProvider,
    OpenAIProvider,
)

logger = logging.getLogger(__name__)

load_dotenv()


def split_model(model: str | None, default_provider: str) -> tuple[str, str | None]:
    """
    Split a model string into (provider name, model name).

    Expected formats:
    - "provider:model_name" (e.g. "openai:gpt-4.1-nano", "gemini:gemini-2.5-flash")
    - "model_name" (no colon) → uses ``default_provider``.
    """
    if model and ":" in model:
        provider_name, raw_model = model.split(":", 1)
        return provider_name.strip().lower(), raw_model.strip() or None
    return default_provider.strip().lower(), (model or "").strip() or None


def get_provider(llm: str, model: str | None = None) -> LLMProvider:
    """Build the provider for backend ``llm`` (openai, anthropic, bedrock, ollama, gemini/google, mock)."""
    provider_name, model_name = split_model(model, llm or "mock")
    if provider_name == "openai":
        return OpenAIProvider(default_model=model_name) if model_name else OpenAIProvider()
    if provider_name == "anthropic":
        return AnthropicProvider(default_model=model_name) if model_name else AnthropicProvider()
    if provider_name == "bedrock":
        return BedrockProvider(default_model=model_name) if model_name else BedrockProvider()
    if provider_name in ("gemini", "google"):
        return GeminiProvider(default_model=model_name) if model_name else GeminiProvider()
    if provider_name == "ollama":
        return OllamaProvider(default_model=model_name) if model_name else OllamaProvider()
    if provider_name != "mock":
        logger.warning("unknown llm backend '%s', using the mock provider", provider_name)
    return MockProvider()
