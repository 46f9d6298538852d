"""Abstract LLM provider interface. All providers must implement this."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from dwiju.core.config import settings
from dwiju.core.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)


@dataclass
class Message:
    role: str  # "user" | "assistant" | "system"
    content: str


@dataclass
class LLMResponse:
    content: str
    tokens: int = 0
    model: str = ""


class BaseLLMProvider(ABC):
    default_model: str = ""

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Send the prompt window and return one text completion.

        Failures are raised as ``ProviderError`` subclasses, never as raw
        transport or SDK exceptions.
        """
        ...


def provider_error_for_status(status: int, detail: str = "", retry_after: int | None = None) -> ProviderError:
    """Map an HTTP status from the provider onto the provider error taxonomy."""
    details = {"provider": detail} if settings.debug and detail else None
    if status in (401, 403):
        return ProviderAuthError("AI service authentication failed", details=details)
    if status == 429:
        return ProviderRateLimitedError(
            "AI service rate limit exceeded. Please try again later.",
            retry_after=retry_after or 60,
            details=details,
        )
    if status == 408:
        return ProviderTimeoutError("AI service timed out", details=details)
    if status >= 500:
        return ProviderUnavailableError("AI service temporarily unavailable", details=details)
    return ProviderError(f"AI service rejected the request ({status})", details=details)
