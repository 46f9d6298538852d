"""Account registration and login."""

import logging
import re
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, or_, select

from dwiju.core.errors import DuplicateKeyError, ForbiddenError, InvalidInputError, UnauthorizedError
from dwiju.core.security import ROLES, hash_password, verify_password
from dwiju.models.account import Account

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def register_account(
    session: Session, username: str, email: str, password: str, role: str = "user"
) -> Account:
    username = (username or "").strip()
    email = (email or "").strip().lower()

    if not 3 <= len(username) <= 50:
        raise InvalidInputError("Username must be between 3 and 50 characters")
    if not _EMAIL_RE.match(email):
        raise InvalidInputError("A valid email address is required")
    if len(password or "") < 6:
        raise InvalidInputError("Password must be at least 6 characters")
    if role not in ROLES:
        raise InvalidInputError(f"Role must be one of {', '.join(ROLES)}")

    if session.exec(select(Account).where(Account.username == username)).first():
        raise DuplicateKeyError("username")
    if session.exec(select(Account).where(Account.email == email)).first():
        raise DuplicateKeyError("email")

    account = Account(username=username, email=email, password_hash=hash_password(password), role=role)
    session.add(account)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        field = "email" if "email" in str(e.orig) else "username"
        raise DuplicateKeyError(field)
    session.refresh(account)
    logger.info(f"Registered account {account.id} ({username})")
    return account


def authenticate(session: Session, identifier: str, password: str) -> Account:
    """Look up by username or email and check the password. Updates login stats."""
    identifier = (identifier or "").strip()
    if not identifier or not password:
        raise InvalidInputError("Username/email and password are required")

    account = session.exec(
        select(Account).where(or_(Account.username == identifier, Account.email == identifier.lower()))
    ).first()
    if account is None or not verify_password(password, account.password_hash):
        logger.debug(f"Failed login for {identifier}")
        raise UnauthorizedError("Invalid credentials", code="INVALID_CREDENTIALS")
    if not account.is_active:
        raise ForbiddenError("Account is disabled", code="ACCOUNT_DISABLED")

    account.last_login = datetime.now(timezone.utc)
    account.login_count += 1
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


def get_account(session: Session, account_id: int) -> Account | None:
    return session.get(Account, account_id)
