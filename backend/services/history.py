from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from models import db_models
from typing import List, Dict, Optional

def get_conversations(db: Session, user_id: str, limit: int = 50, offset: int = 0):
    return (
        db.query(db_models.ConversationDB)
        .filter(db_models.ConversationDB.user_id == user_id)
        .order_by(db_models.ConversationDB.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

def get_conversation(db: Session, user_id: str, conv_id: str):
    return (
        db.query(db_models.ConversationDB)
        .filter(db_models.ConversationDB.id == conv_id, db_models.ConversationDB.user_id == user_id)
        .first()
    )

def create_conversation(db: Session, user_id: str, title: str, messages: List[Dict],
                        conv_id: Optional[str] = None, user_full_name: str = "User"):
    db_conv = db_models.ConversationDB(user_id=user_id, title=title, messages=messages, user_full_name=user_full_name)
    if conv_id:
        db_conv.id = conv_id
    db.add(db_conv)
    db.commit()
    db.refresh(db_conv)
    return db_conv

def save_conversation(db: Session, user_id: str, conv_id: str, title: str, messages: List[Dict],
                      user_full_name: str = "User"):
    """Upsert by id: insert the row on first save, overwrite title and messages afterwards."""
    db_conv = get_conversation(db, user_id, conv_id)
    if db_conv is None:
        return create_conversation(db, user_id, title, messages, conv_id=conv_id, user_full_name=user_full_name)
    db_conv.title = title
    db_conv.user_full_name = user_full_name
    db_conv.messages = list(messages)
    # ORM requires re-assignment for JSON mutation detection
    flag_modified(db_conv, "messages")
    db.commit()
    db.refresh(db_conv)
    return db_conv

def update_conversation_title(db: Session, user_id: str, conv_id: str, title: str):
    db_conv = get_conversation(db, user_id, conv_id)
    if db_conv:
        db_conv.title = title
        db.commit()
        db.refresh(db_conv)
    return db_conv

def delete_conversation(db: Session, user_id: str, conv_id: str):
    db_conv = get_conversation(db, user_id, conv_id)
    if db_conv:
        db.delete(db_conv)
        db.commit()
        return True
    return False
