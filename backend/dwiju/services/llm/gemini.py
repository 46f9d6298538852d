"""Google Gemini LLM provider."""

import asyncio
import logging

import httpx
from google import genai
from google.genai import errors, types

from dwiju.core.config import settings
from dwiju.core.errors import ProviderAuthError, ProviderTimeoutError, ProviderUnavailableError
from dwiju.services.llm.base import BaseLLMProvider, LLMResponse, Message, provider_error_for_status

logger = logging.getLogger(__name__)


class GeminiProvider(BaseLLMProvider):
    def __init__(self, client: genai.Client | None = None, model: str | None = None):
        if client is None:
            if not settings.gemini_api_key:
                raise ProviderAuthError("Gemini API key not configured. Set DWIJU_GEMINI_API_KEY.")
            client = genai.Client(api_key=settings.gemini_api_key)
        self.client = client
        self.default_model = model or settings.gemini_model

    async def chat(
        self,
        messages: list[Message],
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        model = model or self.default_model
        system_prompt = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in messages
            if m.role != "system"
        ]
        config = types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            max_output_tokens=max_tokens,
            temperature=temperature,
        )

        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(model=model, contents=contents, config=config),
                timeout=settings.provider_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Gemini call to {model} timed out after {settings.provider_timeout}s")
            raise ProviderTimeoutError("AI service timed out")
        except errors.APIError as e:
            logger.error(f"Gemini error {e.code}: {e.message}")
            raise provider_error_for_status(e.code or 500, detail=str(e.message or ""))
        except httpx.TransportError as e:
            logger.warning(f"Gemini unreachable: {e}")
            raise ProviderUnavailableError("AI service temporarily unavailable")

        usage = response.usage_metadata
        return LLMResponse(
            content=response.text or "",
            tokens=(usage.total_token_count or 0) if usage else 0,
            model=model,
        )
