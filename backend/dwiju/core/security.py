"""Password hashing, JWT issuing/verification and the bearer-token dependencies."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dwiju.core.config import settings
from dwiju.core.errors import ForbiddenError, InternalError, UnauthorizedError

logger = logging.getLogger(__name__)

ROLES = ("user", "admin", "moderator")

_bearer = HTTPBearer(auto_error=False)


@dataclass
class TokenData:
    user_id: int
    role: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _secret() -> str:
    if not settings.jwt_secret:
        raise InternalError("JWT secret not configured. Set DWIJU_JWT_SECRET.")
    return settings.jwt_secret


def create_access_token(user_id: int, role: str, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {"userId": user_id, "role": role, "iat": now, "exp": expire}
    return jwt.encode(payload, _secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenData:
    """Verify a token and return its claims.

    Expired and malformed tokens are reported with distinct codes because
    clients refresh on ``TOKEN_EXPIRED`` but log out on ``INVALID_TOKEN``.
    """
    try:
        payload = jwt.decode(token, _secret(), algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")

    user_id = payload.get("userId")
    role = payload.get("role")
    if not isinstance(user_id, int) or role not in ROLES:
        raise ForbiddenError("Token verification failed", code="TOKEN_ERROR")
    return TokenData(user_id=user_id, role=role)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token required", code="NO_TOKEN")
    return decode_access_token(credentials.credentials)


def require_role(*roles: str):
    def dependency(user: TokenData = Depends(get_current_user)) -> TokenData:
        if user.role not in roles:
            logger.debug(f"User {user.user_id} with role {user.role} denied, requires {roles}")
            raise ForbiddenError(
                "Insufficient permissions",
                details={"required": list(roles), "current": user.role},
            )
        return user

    return dependency


require_admin = require_role("admin")
require_moderator = require_role("admin", "moderator")
