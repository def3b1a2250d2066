import asyncio
import os
import uuid

# Settings read the environment at import time; keep tests off Secrets Manager.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("COMMUNICATION_API_URL", "")
os.environ.setdefault("COMMUNICATION_API_KEY", "")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import property_inbox.model  # noqa: F401 (registers tables)
from property_inbox.cache import QueryCache
from property_inbox.core.database import Base
from property_inbox.crud import profile_crud
from property_inbox.schema.inbox import ConversationCreateBody, MessageCreateBody
from property_inbox.service.conversation_service import ConversationService
from property_inbox.service.message_service import MessageService
from property_inbox.service.messaging_service import MessagingService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache():
    return QueryCache(default_stale_time=300, retries=1, retry_base_delay=0, retry_max_delay=0)


@pytest.fixture
def make_user(db):
    """Create a profile and return its user id."""
    def _make(first="Test", last="User", email=None, phone=None):
        user_id = uuid.uuid4()
        profile_crud.create_from_dict(
            db,
            obj_in={
                "user_id": user_id,
                "first_name": first,
                "last_name": last,
                "email": email or f"{first.lower()}.{user_id.hex[:6]}@example.com",
                "phone": phone,
            },
        )
        return user_id
    return _make


@pytest.fixture
def conversations(db, cache):
    return ConversationService(db, cache)


@pytest.fixture
def messages(db, cache):
    return MessageService(db, cache, page_size=3)


@pytest.fixture
def messaging(db, cache):
    return MessagingService(db, cache)


@pytest.fixture
def start_conversation(messaging):
    """Create a conversation through the service; returns its list item."""
    def _start(creator, participant_ids, content="Hello", **kwargs):
        body = ConversationCreateBody(participant_ids=participant_ids, initial_message=content, **kwargs)
        return asyncio.run(messaging.create_conversation(creator, body))
    return _start


@pytest.fixture
def send(messaging):
    def _send(viewer_id, conversation_id, content, **kwargs):
        body = MessageCreateBody(content=content, **kwargs)
        return asyncio.run(messaging.send_message(viewer_id, conversation_id, body))
    return _send
