"""LLM provider factory."""

from dwiju.core.config import settings
from dwiju.services.llm.base import BaseLLMProvider, LLMResponse, Message

__all__ = ["BaseLLMProvider", "LLMResponse", "Message", "get_llm_provider"]


def get_llm_provider() -> BaseLLMProvider:
    """Factory function that returns the configured LLM provider."""
    if settings.llm_provider == "openai":
        from dwiju.services.llm.chat_completions import OpenAIProvider
        return OpenAIProvider()
    elif settings.llm_provider == "gemini":
        from dwiju.services.llm.gemini import GeminiProvider
        return GeminiProvider()
    else:
        raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")
