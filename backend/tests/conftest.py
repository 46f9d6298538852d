"""Shared test fixtures for backend tests."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from dwiju.core.config import settings
from dwiju.core import rate_limit
from dwiju.core.database import create_db_engine, get_session
from dwiju.core.security import create_access_token, hash_password
from dwiju.models.account import Account
from dwiju.services.llm.base import BaseLLMProvider, LLMResponse, Message

# In-memory SQLite with StaticPool so all connections (including threads) share one DB
test_engine = create_db_engine("sqlite://", poolclass=StaticPool)

TEST_JWT_SECRET = "test-secret"


def get_test_session():
    with Session(test_engine) as session:
        yield session


class FakeProvider(BaseLLMProvider):
    """Records every prompt window and answers with a canned reply (or raises ``error``)."""

    default_model = "fake-model"

    def __init__(self, content: str = "Hi there", tokens: int = 12, error: Exception | None = None):
        self.content = content
        self.tokens = tokens
        self.error = error
        self.calls: list[dict] = []

    async def chat(
        self,
        messages: list[Message],
        model: str | None = None,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.calls.append(
            {"messages": messages, "model": model, "max_tokens": max_tokens, "temperature": temperature}
        )
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.content, tokens=self.tokens, model=model or self.default_model)


def make_account(username: str = "alice", role: str = "user", password: str = "secret123") -> Account:
    """Insert an account directly into the test DB."""
    with Session(test_engine) as session:
        account = Account(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            role=role,
        )
        session.add(account)
        session.commit()
        session.refresh(account)
        return account


def auth_headers(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account.id, account.role)}"}


@pytest.fixture(autouse=True)
def setup_test_db(monkeypatch):
    """Create all tables before each test, drop after. Request limits start fresh."""
    import dwiju.models  # noqa: F401 - register models
    monkeypatch.setattr(settings, "jwt_secret", TEST_JWT_SECRET)
    rate_limit.request_limiter.reset()
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session():
    with Session(test_engine) as s:
        yield s


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(fake_provider):
    """FastAPI TestClient with the database and provider swapped out."""
    with patch("dwiju.core.database.engine", test_engine):
        from dwiju.api.chat import get_provider
        from dwiju.main import app

        app.dependency_overrides[get_session] = get_test_session
        app.dependency_overrides[get_provider] = lambda: fake_provider

        with TestClient(app) as c:
            yield c

        app.dependency_overrides.clear()
