"""REST API for chat session history management."""

import logging
import math

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from dwiju.core.database import get_session
from dwiju.core.security import TokenData, get_current_user, require_admin
from dwiju.models.conversation import conversation_to_dict
from dwiju.services.ledger import SessionLedger

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_sessions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    active: bool = False,  # only active=true filters; otherwise every conversation is listed
    user: TokenData = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    conversations, total = SessionLedger(session).list_conversations(
        user.user_id, page=page, page_size=limit, active_only=active
    )
    return {
        "success": True,
        "sessions": [conversation_to_dict(c) for c in conversations],
        "pagination": {
            "current": page,
            "pages": math.ceil(total / limit),
            "total": total,
        },
    }


@router.post("/cleanup")
async def cleanup_sessions(
    days: int = Query(30, ge=0),
    admin: TokenData = Depends(require_admin),
    session: Session = Depends(get_session),
):
    deactivated = SessionLedger(session).deactivate_stale_conversations(days_old=days)
    return {"success": True, "deactivated": deactivated}


@router.get("/{session_id}")
async def get_chat_session(
    session_id: str,
    user: TokenData = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    conv, messages = SessionLedger(session).get_conversation(session_id, user.user_id)
    return {"success": True, "session": conversation_to_dict(conv, messages)}


@router.delete("/{session_id}")
async def delete_chat_session(
    session_id: str,
    user: TokenData = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    SessionLedger(session).deactivate_conversation(session_id, user.user_id)
    return {"success": True, "message": "Chat session deleted successfully"}


@router.post("/{session_id}/clear")
async def clear_chat_session(
    session_id: str,
    user: TokenData = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    SessionLedger(session).clear_conversation(session_id, user.user_id)
    return {"success": True, "message": "Chat session cleared successfully"}
