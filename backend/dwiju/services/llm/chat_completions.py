"""OpenAI-compatible chat completions provider."""

import logging
from typing import Any

import httpx

from dwiju.core.config import settings
from dwiju.core.errors import ProviderAuthError, ProviderTimeoutError, ProviderUnavailableError
from dwiju.services.llm.base import BaseLLMProvider, LLMResponse, Message, provider_error_for_status

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """Sends one POST to ``{base_url}/chat/completions`` per exchange."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.default_model = model or settings.openai_model
        self._timeout = timeout or settings.provider_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderAuthError("AI service API key not configured. Set DWIJU_OPENAI_API_KEY.")
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def chat(
        self,
        messages: list[Message],
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        model = model or self.default_model
        payload = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    f"{self._base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                    timeout=self._timeout,
                )
        except httpx.TimeoutException:
            logger.warning(f"Provider call to {model} timed out after {self._timeout}s")
            raise ProviderTimeoutError("AI service timed out")
        except httpx.TransportError as e:
            logger.warning(f"Provider unreachable: {e}")
            raise ProviderUnavailableError("AI service temporarily unavailable")

        if resp.status_code >= 400:
            logger.error(f"Provider error {resp.status_code}: {resp.text[:500]}")
            raise provider_error_for_status(
                resp.status_code,
                detail=resp.text[:500],
                retry_after=_retry_after(resp),
            )

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}
        return LLMResponse(
            content=_first_choice_content(data),
            tokens=_total_tokens(data),
            model=data.get("model") or model,
        )


def _first_choice_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


def _total_tokens(data: Any) -> int:
    try:
        tokens = data["usage"]["total_tokens"]
    except (KeyError, TypeError):
        return 0
    return tokens if isinstance(tokens, int) else 0


def _retry_after(resp: httpx.Response) -> int | None:
    value = resp.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(1, round(float(value)))
    except ValueError:
        return None
