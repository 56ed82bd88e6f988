import os
import sys
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))
from models import db_models
from services import history

# Use an in-memory SQLite database for test isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

@pytest.fixture
def db_session():
    engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db_models.Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        db_models.Base.metadata.drop_all(bind=engine)

def _msg(msg_id, sender, text):
    return {"id": msg_id, "sender": sender, "text": text, "timestamp": 1}

def test_create_and_get_conversation(db_session):
    """Test creating a conversation and retrieving it by ID."""
    messages = [_msg("msg-1", "user", "Hello")]
    conv = history.create_conversation(db_session, "u1", "Test Title", messages)

    assert conv.id is not None
    assert conv.title == "Test Title"
    assert len(conv.messages) == 1

    fetched = history.get_conversation(db_session, "u1", conv.id)
    assert fetched is not None
    assert fetched.id == conv.id
    assert fetched.messages == messages

def test_conversations_are_scoped_to_owner(db_session):
    conv = history.create_conversation(db_session, "u1", "Mine", [])

    assert history.get_conversation(db_session, "u2", conv.id) is None
    assert history.get_conversations(db_session, "u2") == []
    assert history.delete_conversation(db_session, "u2", conv.id) is False
    assert history.get_conversation(db_session, "u1", conv.id) is not None

def test_save_conversation_upserts(db_session):
    """First save inserts under the given id, later saves overwrite messages and title."""
    first = history.save_conversation(db_session, "u1", "conv-abc", "New Conversation",
                                      [_msg("msg-1", "user", "Hello")], user_full_name="Ada Lovelace")
    assert first.id == "conv-abc"
    assert first.user_full_name == "Ada Lovelace"

    updated = history.save_conversation(db_session, "u1", "conv-abc", "Greeting",
                                        [_msg("msg-1", "user", "Hello"), _msg("msg-1-ai", "assistant", "Hi!")])
    assert updated.id == "conv-abc"
    assert updated.title == "Greeting"
    assert len(updated.messages) == 2
    assert updated.messages[1]["text"] == "Hi!"
    assert len(history.get_conversations(db_session, "u1")) == 1

def test_update_conversation_title(db_session):
    conv = history.create_conversation(db_session, "u1", "Old", [])
    history.update_conversation_title(db_session, "u1", conv.id, "New")
    assert history.get_conversation(db_session, "u1", conv.id).title == "New"
    assert history.update_conversation_title(db_session, "u1", "missing", "x") is None

def test_delete_conversation(db_session):
    """Test deleting a conversation."""
    conv = history.create_conversation(db_session, "u1", "To Delete", [])

    success = history.delete_conversation(db_session, "u1", conv.id)
    assert success is True

    fetched = history.get_conversation(db_session, "u1", conv.id)
    assert fetched is None

def test_get_conversations_pagination(db_session):
    """Test retrieving multiple conversations with limits and offsets."""
    for i in range(15):
        history.create_conversation(db_session, "u1", f"Conv {i}", [])

    convs = history.get_conversations(db_session, "u1", limit=10, offset=0)
    assert len(convs) == 10

    convs_page2 = history.get_conversations(db_session, "u1", limit=10, offset=5)
    assert len(convs_page2) == 10
