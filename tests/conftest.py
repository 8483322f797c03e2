import asyncio
from typing import List, Sequence

import pytest

from database import build_engine, build_session_factory
from exceptions import RemoteError
from models import Base
from services.context import ContextMessage
from services.store import ChatStore
from services.threads import ThreadService


class FakeModelCall:
    """Scripted stand-in for the hosted model; records every context it is sent."""

    model_name = "fake:echo"

    def __init__(self, replies: Sequence = ()):
        self.replies = list(replies)
        self.contexts: List[List[ContextMessage]] = []

    async def invoke(self, context):
        self.contexts.append(list(context))
        reply = self.replies.pop(0) if self.replies else f"echo: {context[-1].content}"
        if isinstance(reply, Exception):
            raise reply
        return reply


class SlowModelCall(FakeModelCall):
    async def invoke(self, context):
        self.contexts.append(list(context))
        await asyncio.sleep(5)
        return "too late"


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'chats.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return ChatStore(build_session_factory(engine))


@pytest.fixture
def thread_service(store):
    return ThreadService(store)


@pytest.fixture
def fake_model():
    return FakeModelCall()


@pytest.fixture
def remote_error():
    return RemoteError("provider unavailable")
