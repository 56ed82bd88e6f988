from sqlalchemy import Column, String, JSON, DateTime, Boolean, Integer, Text
import uuid
import datetime
from database import Base


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class UserDB(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, default="")
    surname = Column(String, default="")
    email = Column(String, default="")
    avatar_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)


class ConversationDB(Base):
    __tablename__ = "chats"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String, index=True, nullable=False)
    user_full_name = Column(String, default="User")
    title = Column(String, default="New Conversation")
    created_at = Column(DateTime, default=_utcnow, index=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    messages = Column(JSON, default=list)


class TaskDB(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String, index=True, nullable=False)
    text = Column(Text, nullable=False)
    completed = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, index=True)
    updated_at = Column(DateTime, default=_utcnow)
    completed_at = Column(DateTime, nullable=True, index=True)


class FileDB(Base):
    __tablename__ = "files"

    id = Column(String, primary_key=True, default=lambda: uuid.uuid4().hex)
    user_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    file_path = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, index=True)
