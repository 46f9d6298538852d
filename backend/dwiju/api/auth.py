"""Registration, login and the current account."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from dwiju.core.database import get_session
from dwiju.core.errors import NotFoundError
from dwiju.core.security import TokenData, create_access_token, get_current_user
from dwiju.models.account import account_to_dict
from dwiju.services.accounts import authenticate, get_account, register_account

router = APIRouter()


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    identifier: str  # username or email
    password: str


@router.post("/register", status_code=201)
async def register(body: RegisterRequest, session: Session = Depends(get_session)):
    account = register_account(session, body.username, body.email, body.password)
    token = create_access_token(account.id, account.role)  # type: ignore[arg-type]
    return {"success": True, "token": token, "user": account_to_dict(account)}


@router.post("/login")
async def login(body: LoginRequest, session: Session = Depends(get_session)):
    account = authenticate(session, body.identifier, body.password)
    token = create_access_token(account.id, account.role)  # type: ignore[arg-type]
    return {"success": True, "token": token, "user": account_to_dict(account)}


@router.get("/me")
async def me(user: TokenData = Depends(get_current_user), session: Session = Depends(get_session)):
    account = get_account(session, user.user_id)
    if account is None or not account.is_active:
        raise NotFoundError("Account not found")
    return {"success": True, "user": account_to_dict(account)}
