"""Session ledger: conversation transcripts, derived totals and per-account usage.

Every mutating operation runs as one transaction against the session it was
given and ends with an explicit recomputation of the derived totals, so that
``message_count == len(messages)`` and ``token_count == sum(tokens)`` hold
after each commit. The recomputation happens after the row write, while the
database write lock is held, and reads the conversation back first so that
concurrent appends to the same conversation cannot lose each other.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from dwiju.core.config import settings
from dwiju.core.errors import DuplicateKeyError, ForbiddenError, InvalidInputError, NotFoundError
from dwiju.models.account import Account
from dwiju.models.conversation import (
    DEFAULT_TITLE,
    INPUT_TYPES,
    MESSAGE_ROLES,
    ChatMessage,
    Conversation,
)
from dwiju.services.llm.base import Message
from dwiju.services.personas import system_prompt_for

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
MAX_PAGE_SIZE = 100

# Public usage kind -> Account column
USAGE_COUNTERS = {
    "chatRequests": "chat_requests",
    "voiceRequests": "voice_requests",
    "visionRequests": "vision_requests",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    """Millisecond timestamp plus a random suffix, unique within a conversation."""
    return f"{int(time.time() * 1000)}{uuid.uuid4().hex[:9]}"


def derive_title(content: str) -> str:
    if len(content) > TITLE_MAX_LENGTH:
        return content[:TITLE_MAX_LENGTH] + "..."
    return content


@dataclass
class AppendResult:
    conversation: Conversation
    message: ChatMessage


class SessionLedger:
    def __init__(self, session: Session):
        self.session = session

    # --- Lookups ---

    def _find(self, session_id: str, account_id: int | None = None) -> Conversation | None:
        query = select(Conversation).where(Conversation.session_id == session_id)
        if account_id is not None:
            query = query.where(Conversation.account_id == account_id)
        return self.session.exec(query).first()

    def _require(self, session_id: str, account_id: int | None = None) -> Conversation:
        conv = self._find(session_id, account_id)
        if conv is None:
            logger.debug(f"Conversation {session_id} not found for account {account_id}")
            raise NotFoundError("Chat session not found")
        return conv

    def messages(self, conv: Conversation) -> list[ChatMessage]:
        return list(
            self.session.exec(
                select(ChatMessage)
                .where(ChatMessage.conversation_id == conv.id)
                .order_by(ChatMessage.id)  # type: ignore
            ).all()
        )

    def get_conversation(self, session_id: str, account_id: int) -> tuple[Conversation, list[ChatMessage]]:
        conv = self._require(session_id, account_id)
        return conv, self.messages(conv)

    # --- Derived fields ---

    def _recompute_totals(self, conv: Conversation) -> None:
        count, tokens = self.session.exec(
            select(func.count(ChatMessage.id), func.coalesce(func.sum(ChatMessage.tokens), 0)).where(
                ChatMessage.conversation_id == conv.id
            )
        ).one()
        conv.message_count = count
        conv.token_count = tokens

        if conv.title == DEFAULT_TITLE and count:
            first_user = self.session.exec(
                select(ChatMessage)
                .where(ChatMessage.conversation_id == conv.id, ChatMessage.role == "user")
                .order_by(ChatMessage.id)  # type: ignore
            ).first()
            if first_user is not None:
                conv.title = derive_title(first_user.content)

        now = _now()
        conv.last_activity = now
        conv.updated_at = now

    # --- Transcript mutation ---

    def _get_or_create(
        self, account_id: int, session_id: str, language: str, persona: str | None, title: str | None
    ) -> Conversation:
        conv = self._find(session_id)
        if conv is not None:
            if conv.account_id != account_id:
                raise DuplicateKeyError("sessionId")
            return conv

        conv = Conversation(
            account_id=account_id,
            session_id=session_id,
            title=title or DEFAULT_TITLE,
            model=settings.chat_model,
            temperature=settings.default_temperature,
            max_tokens=settings.default_max_tokens,
            language=language,
            persona=persona or settings.default_persona,
        )
        self.session.add(conv)
        try:
            self.session.commit()
        except IntegrityError:
            # Lost a create race: another request inserted the same session_id first
            self.session.rollback()
            conv = self._find(session_id)
            if conv is None:
                raise
            if conv.account_id != account_id:
                raise DuplicateKeyError("sessionId")
            return conv

        self.session.refresh(conv)
        logger.info(f"Created conversation {session_id} for account {account_id}")
        return conv

    def _append(self, conv: Conversation, role: str, content: str, **metadata) -> ChatMessage:
        if role not in MESSAGE_ROLES:
            raise InvalidInputError(f"Invalid message role: {role}")
        if role == "user" and not content:
            raise InvalidInputError("Message is required")

        msg = ChatMessage(
            message_id=new_message_id(),
            conversation_id=conv.id,  # type: ignore[arg-type]
            role=role,
            content=content,
            **metadata,
        )
        self.session.add(msg)
        self.session.flush()
        self.session.refresh(conv)
        self._recompute_totals(conv)
        self.session.add(conv)
        self.session.commit()
        self.session.refresh(conv)
        self.session.refresh(msg)
        return msg

    def append_user_message(
        self,
        account_id: int,
        session_id: str,
        text: str,
        input_type: str = "text",
        language: str = "en",
        persona: str | None = None,
        attachments: list[dict] | None = None,
        title: str | None = None,
    ) -> AppendResult:
        """Append a user turn, creating the conversation on first use.

        Validation happens before anything is written.
        """
        content = (text or "").strip()
        if not content:
            raise InvalidInputError("Message is required")
        if not session_id or not session_id.strip():
            raise InvalidInputError("sessionId is required")
        if input_type not in INPUT_TYPES:
            raise InvalidInputError(f"inputType must be one of {', '.join(INPUT_TYPES)}")

        if not self._account(account_id).is_active:
            raise ForbiddenError("Account is disabled", code="ACCOUNT_DISABLED")

        conv = self._get_or_create(account_id, session_id.strip(), language, persona, title)
        msg = self._append(
            conv,
            "user",
            content,
            model=conv.model,
            language=language,
            input_type=input_type,
            attachments=attachments or [],
        )
        return AppendResult(conversation=conv, message=msg)

    def append_assistant_message(
        self,
        session_id: str,
        text: str,
        tokens: int = 0,
        model: str | None = None,
        latency_ms: int | None = None,
        language: str | None = None,
    ) -> AppendResult:
        conv = self._require(session_id)
        msg = self._append(
            conv,
            "assistant",
            text or "",
            tokens=max(0, int(tokens or 0)),
            model=model or conv.model,
            response_time_ms=latency_ms,
            language=language or conv.language,
        )
        return AppendResult(conversation=conv, message=msg)

    def build_prompt_window(
        self, session_id: str, window_size: int | None = None, persona: str | None = None
    ) -> list[Message]:
        """Persona instruction followed by the trailing ``window_size`` messages, oldest first."""
        if window_size is None:
            window_size = settings.prompt_window
        if window_size < 0:
            raise InvalidInputError("windowSize must not be negative")

        conv = self._require(session_id)
        recent: list[ChatMessage] = []
        if window_size:
            recent = list(
                self.session.exec(
                    select(ChatMessage)
                    .where(ChatMessage.conversation_id == conv.id)
                    .order_by(ChatMessage.id.desc())  # type: ignore
                    .limit(window_size)
                ).all()
            )
            recent.reverse()

        return [Message(role="system", content=system_prompt_for(persona or conv.persona))] + [
            Message(role=m.role, content=m.content) for m in recent
        ]

    def clear_conversation(self, session_id: str, account_id: int) -> Conversation:
        conv = self._require(session_id, account_id)
        for msg in self.messages(conv):
            self.session.delete(msg)
        self.session.flush()
        self.session.refresh(conv)
        self._recompute_totals(conv)
        self.session.add(conv)
        self.session.commit()
        self.session.refresh(conv)
        logger.debug(f"Cleared conversation {session_id}")
        return conv

    def deactivate_conversation(self, session_id: str, account_id: int) -> Conversation:
        conv = self._require(session_id, account_id)
        if conv.is_active:
            conv.is_active = False
            conv.updated_at = _now()
            self.session.add(conv)
            self.session.commit()
            self.session.refresh(conv)
            logger.debug(f"Deactivated conversation {session_id}")
        return conv

    def deactivate_stale_conversations(self, days_old: int = 30) -> int:
        if days_old < 0:
            raise InvalidInputError("days must not be negative")
        cutoff = _now() - timedelta(days=days_old)
        stale = self.session.exec(
            select(Conversation).where(
                Conversation.is_active == True,  # noqa: E712
                Conversation.last_activity < cutoff,
            )
        ).all()
        for conv in stale:
            conv.is_active = False
            conv.updated_at = _now()
            self.session.add(conv)
        self.session.commit()
        logger.info(f"Deactivated {len(stale)} conversations idle for more than {days_old} days")
        return len(stale)

    # --- Listing ---

    def list_conversations(
        self, account_id: int, page: int = 1, page_size: int = 20, active_only: bool = True
    ) -> tuple[list[Conversation], int]:
        if page < 1 or page_size < 1:
            raise InvalidInputError("page and limit must be positive")
        page_size = min(page_size, MAX_PAGE_SIZE)

        filters = [Conversation.account_id == account_id]
        if active_only:
            filters.append(Conversation.is_active == True)  # noqa: E712

        total = self.session.exec(select(func.count()).select_from(Conversation).where(*filters)).one()
        items = self.session.exec(
            select(Conversation)
            .where(*filters)
            .order_by(Conversation.last_activity.desc(), Conversation.id.desc())  # type: ignore
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return list(items), total

    # --- Usage accounting ---

    def _account(self, account_id: int) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    def record_usage(self, account_id: int, kind: str) -> Account:
        if kind not in USAGE_COUNTERS:
            raise InvalidInputError(f"Unknown usage kind: {kind}")
        column = getattr(Account, USAGE_COUNTERS[kind])
        # Single UPDATE so concurrent exchanges each count exactly once
        result = self.session.exec(  # type: ignore[call-overload]
            update(Account)
            .where(Account.id == account_id)  # type: ignore[arg-type]
            .values({column: column + 1, Account.updated_at: _now()})
        )
        if result.rowcount == 0:
            self.session.rollback()
            raise NotFoundError("Account not found")
        self.session.commit()
        return self._account(account_id)

    def reset_usage(self, account_id: int) -> Account:
        account = self._account(account_id)
        for column in USAGE_COUNTERS.values():
            setattr(account, column, 0)
        account.usage_reset_at = _now()
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account
