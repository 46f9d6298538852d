"""Registered accounts and their per-account usage counters."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class Account(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, max_length=50)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = Field(default="user", index=True)  # "user" | "admin" | "moderator"
    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)
    language: str = Field(default="en")
    last_login: Optional[datetime] = None
    login_count: int = Field(default=0)

    # Usage since usage_reset_at
    chat_requests: int = Field(default=0)
    voice_requests: int = Field(default=0)
    vision_requests: int = Field(default=0)
    usage_reset_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def account_to_dict(account: Account) -> dict:
    """Public view of an account. The password hash is never included."""
    return {
        "id": account.id,
        "username": account.username,
        "email": account.email,
        "role": account.role,
        "isActive": account.is_active,
        "isVerified": account.is_verified,
        "language": account.language,
        "lastLogin": account.last_login.isoformat() if account.last_login else None,
        "loginCount": account.login_count,
        "apiUsage": {
            "chatRequests": account.chat_requests,
            "voiceRequests": account.voice_requests,
            "visionRequests": account.vision_requests,
            "lastReset": account.usage_reset_at.isoformat(),
        },
        "createdAt": account.created_at.isoformat(),
    }
