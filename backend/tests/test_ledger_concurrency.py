"""Concurrent appends against one conversation, on a real file database with separate connections."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlmodel import Session, SQLModel, select

from dwiju.core.database import create_db_engine
from dwiju.models.account import Account
from dwiju.models.conversation import ChatMessage, Conversation
from dwiju.services.ledger import SessionLedger


@pytest.fixture
def file_engine(tmp_path):
    import dwiju.models  # noqa: F401 - register models
    engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


def _alice(engine) -> int:
    with Session(engine) as session:
        account = Account(username="alice", email="alice@example.com", password_hash="x")
        session.add(account)
        session.commit()
        session.refresh(account)
        return account.id


def _run_concurrently(fn, args: list) -> None:
    barrier = threading.Barrier(len(args))

    def worker(arg):
        barrier.wait()
        fn(arg)

    with ThreadPoolExecutor(max_workers=len(args)) as pool:
        for future in [pool.submit(worker, a) for a in args]:
            future.result()


def test_concurrent_first_messages_create_one_conversation(file_engine):
    alice = _alice(file_engine)

    def append(text):
        with Session(file_engine) as session:
            SessionLedger(session).append_user_message(alice, "race", text)

    _run_concurrently(append, ["first", "second"])

    with Session(file_engine) as session:
        conversations = session.exec(select(Conversation).where(Conversation.session_id == "race")).all()
        assert len(conversations) == 1
        conv = conversations[0]
        messages = session.exec(select(ChatMessage).where(ChatMessage.conversation_id == conv.id)).all()
        assert sorted(m.content for m in messages) == ["first", "second"]
        assert conv.message_count == 2


def test_concurrent_appends_keep_totals(file_engine):
    alice = _alice(file_engine)
    with Session(file_engine) as session:
        SessionLedger(session).append_user_message(alice, "busy", "hello")

    def reply(tokens):
        with Session(file_engine) as session:
            SessionLedger(session).append_assistant_message("busy", f"reply {tokens}", tokens=tokens)

    _run_concurrently(reply, [3, 5, 7, 11])

    with Session(file_engine) as session:
        conv, messages = SessionLedger(session).get_conversation("busy", alice)
        assert len(messages) == 5
        assert conv.message_count == 5
        assert conv.token_count == 26


def test_concurrent_usage_increments(file_engine):
    alice = _alice(file_engine)

    def count(_):
        with Session(file_engine) as session:
            SessionLedger(session).record_usage(alice, "chatRequests")

    _run_concurrently(count, list(range(6)))

    with Session(file_engine) as session:
        assert session.get(Account, alice).chat_requests == 6
