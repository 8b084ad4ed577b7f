"""Chat model provider abstractions and implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .anthropic import AnthropicProvider
from .base import ChatSession, ModelError, ModelProvider
from .ollama import OllamaProvider

if TYPE_CHECKING:
    from mediassist.config import Settings

__all__ = [
    "AnthropicProvider",
    "ChatSession",
    "ModelError",
    "ModelProvider",
    "OllamaProvider",
    "create_provider",
]


def create_provider(settings: "Settings") -> ModelProvider:
    """Build the provider named by ``settings.llm_provider``."""
    if settings.llm_provider == "ollama":
        return OllamaProvider(
            model=settings.ollama_model,
            base_url=settings.ollama_url,
            temperature=settings.llm_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    if settings.llm_provider == "claude":
        return AnthropicProvider(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            base_url=settings.anthropic_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")
