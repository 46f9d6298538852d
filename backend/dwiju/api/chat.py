"""Chat endpoint: records the exchange in the session ledger and relays the provider's reply."""

import logging
import time
import uuid

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from dwiju.core.database import get_session
from dwiju.core.security import TokenData, get_current_user
from dwiju.services.ledger import SessionLedger
from dwiju.services.llm import BaseLLMProvider

router = APIRouter()
logger = logging.getLogger(__name__)


class Attachment(BaseModel):
    type: str
    url: str = ""
    filename: str = ""
    size: int = 0


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    session_id: str | None = Field(default=None, alias="sessionId")
    persona: str | None = None
    language: str = "en"
    input_type: str = Field(default="text", alias="inputType")
    attachments: list[Attachment] = []


def get_provider(request: Request) -> BaseLLMProvider:
    """The provider built once at startup (see ``dwiju.main.lifespan``)."""
    return request.app.state.llm_provider


@router.post("")
async def chat(
    body: ChatRequest,
    user: TokenData = Depends(get_current_user),
    session: Session = Depends(get_session),
    provider: BaseLLMProvider = Depends(get_provider),
):
    ledger = SessionLedger(session)
    session_id = body.session_id or uuid.uuid4().hex

    # Committed before the provider call; a failed call leaves it in place
    result = ledger.append_user_message(
        user.user_id,
        session_id,
        body.message,
        input_type=body.input_type,
        language=body.language,
        persona=body.persona,
        attachments=[a.model_dump() for a in body.attachments],
    )
    conv = result.conversation
    model, max_tokens, temperature = conv.model, conv.max_tokens, conv.temperature

    window = ledger.build_prompt_window(session_id, persona=body.persona)
    logger.info(f"Chat {session_id}: sending {len(window)} messages to {model}")

    started = time.monotonic()
    completion = await provider.chat(window, model=model, max_tokens=max_tokens, temperature=temperature)
    response_time = int((time.monotonic() - started) * 1000)
    logger.info(f"Chat {session_id}: {completion.tokens} tokens in {response_time}ms")

    reply = ledger.append_assistant_message(
        session_id,
        completion.content,
        tokens=completion.tokens,
        model=model,
        latency_ms=response_time,
        language=body.language,
    )
    ledger.record_usage(user.user_id, "chatRequests")

    return {
        "success": True,
        "message": completion.content,
        "sessionId": session_id,
        "messageId": reply.message.message_id,
        "metadata": {
            "responseTime": response_time,
            "tokens": completion.tokens,
            "model": model,
        },
    }
