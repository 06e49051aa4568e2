"""LLM providers: pluggable backends for the agent orchestrator."""

from .anthropic_provider import AnthropicProvider, BedrockProvider
from .base import LLMProvider
from .gemini_provider import GeminiProvider
from .mock import MockProvider
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "LLMProvider",
    "MockProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "AnthropicProvider",
    "BedrockProvider",
]
