"""
Chat turn reconciliation.

A turn runs in a fixed order: the user message is appended, an empty
assistant placeholder follows it, streamed chunks are appended to the
placeholder, the finished conversation is persisted and, for a brand-new
conversation, a title is generated from the first exchange.

The HTTP layer calls `begin_turn` inside the request and hands the returned
state to `stream_reply`, which is consumed by a StreamingResponse.
"""
import json
import time
import uuid
import logging
import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from services import gemini, history

logger = logging.getLogger(__name__)


class ConversationStateError(Exception):
    """Raised when a turn operation is applied out of order."""


@dataclass
class Speaker:
    """Detached copy of the requesting user; ORM rows expire once the request session commits."""
    id: str
    name: str = ""
    surname: str = ""
    full_name: str = "User"

    @classmethod
    def from_user(cls, user, full_name: str):
        return cls(id=user.id, name=user.name or "", surname=user.surname or "", full_name=full_name)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ConversationState:
    def __init__(self, conv_id: str, title: str = gemini.DEFAULT_TITLE, messages: Optional[List[Dict]] = None,
                 created_at: Optional[datetime.datetime] = None, needs_title: bool = False):
        self.id = conv_id
        self.title = title
        self.messages: List[Dict] = list(messages or [])
        self.created_at = created_at
        self.needs_title = needs_title
        self.user_message_id: Optional[str] = None
        self._placeholder_id: Optional[str] = None

    @classmethod
    def new(cls):
        return cls(uuid.uuid4().hex, needs_title=True)

    @classmethod
    def from_record(cls, record):
        return cls(record.id, title=record.title, messages=[dict(m) for m in record.messages or []],
                   created_at=record.created_at)

    def _unique_id(self, base: str) -> str:
        taken = {m["id"] for m in self.messages}
        candidate, n = base, 1
        while candidate in taken:
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    @property
    def placeholder(self) -> Optional[Dict]:
        if self._placeholder_id is None:
            return None
        for message in self.messages:
            if message["id"] == self._placeholder_id:
                return message
        return None

    def append_user_message(self, text: str, image: Optional[str] = None, image_mime_type: Optional[str] = None,
                            file: Optional[Dict] = None) -> Dict:
        if self._placeholder_id is not None:
            raise ConversationStateError("previous reply is still streaming")
        ts = _now_ms()
        message = {"id": self._unique_id(f"msg-{ts}"), "sender": "user", "text": text, "timestamp": ts}
        if image:
            message["image"] = image
            message["image_mime_type"] = image_mime_type
        if file:
            message["file"] = file
        self.messages.append(message)
        self.user_message_id = message["id"]
        return message

    def add_placeholder(self) -> Dict:
        if self._placeholder_id is not None:
            raise ConversationStateError("a reply placeholder already exists")
        ts = _now_ms()
        message = {"id": self._unique_id(f"msg-{ts}-ai"), "sender": "assistant", "text": "", "timestamp": ts}
        self.messages.append(message)
        self._placeholder_id = message["id"]
        return message

    def apply_chunk(self, chunk: str) -> str:
        placeholder = self.placeholder
        if placeholder is None:
            raise ConversationStateError("no reply in progress")
        if chunk:
            placeholder["text"] += chunk
        return placeholder["text"]

    def finalize(self) -> Dict:
        placeholder = self.placeholder
        if placeholder is None:
            raise ConversationStateError("no reply in progress")
        self._placeholder_id = None
        return placeholder

    def fail(self, text: str = gemini.APOLOGY_MESSAGE) -> Dict:
        placeholder = self.placeholder
        if placeholder is None:
            raise ConversationStateError("no reply in progress")
        placeholder["text"] = text
        return self.finalize()

    def history(self) -> List[Dict]:
        """Prior turns with text, i.e. everything before the current user message."""
        end = len(self.messages)
        if self.user_message_id is not None:
            for index, message in enumerate(self.messages):
                if message["id"] == self.user_message_id:
                    end = index
                    break
        return [
            {"role": "user" if m["sender"] == "user" else "assistant", "content": m["text"]}
            for m in self.messages[:end]
            if (m.get("text") or "").strip()
        ]

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": self.messages,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _persist(db: Session, state: ConversationState, speaker: Speaker):
    record = history.save_conversation(db, speaker.id, state.id, state.title, state.messages, speaker.full_name)
    state.created_at = record.created_at
    return record


def begin_turn(db: Session, speaker: Speaker, text: str, conversation_id: Optional[str] = None,
               image: Optional[str] = None, image_mime_type: Optional[str] = None,
               file: Optional[Dict] = None) -> Optional[ConversationState]:
    """Append the user message and reply placeholder, then persist. Returns None for an unknown conversation."""
    if conversation_id:
        record = history.get_conversation(db, speaker.id, conversation_id)
        if record is None:
            return None
        state = ConversationState.from_record(record)
    else:
        state = ConversationState.new()

    state.append_user_message(text, image=image, image_mime_type=image_mime_type, file=file)
    state.add_placeholder()
    _persist(db, state, speaker)
    logger.info("[Chat] Turn started in %s (%d messages)", state.id, len(state.messages))
    return state


def _frame(payload: Dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _save(session_factory, state: ConversationState, speaker: Speaker):
    try:
        with session_factory() as db:
            _persist(db, state, speaker)
    except Exception:
        logger.exception("[Chat] Saving conversation %s failed", state.id)


async def stream_reply(state: ConversationState, prompt: str, speaker: Speaker,
                       attachment: Optional[Dict] = None, session_factory=None):
    """Yield SSE frames while filling the placeholder created by `begin_turn`."""
    if session_factory is None:
        from database import SessionLocal
        session_factory = SessionLocal

    placeholder = state.placeholder
    if placeholder is None:
        raise ConversationStateError("begin_turn must run before stream_reply")

    yield _frame({
        "type": "start",
        "conversation_id": state.id,
        "title": state.title,
        "user_message_id": state.user_message_id,
        "message_id": placeholder["id"],
    })

    turns = state.history()
    try:
        async for chunk in gemini.generate_response_stream(prompt, history=turns, image=attachment, user=speaker):
            if not chunk:
                continue
            state.apply_chunk(chunk)
            yield _frame({"type": "chunk", "text": chunk})
    except Exception as e:
        logger.exception("[Chat] Generation failed for %s", state.id)
        message = state.fail()
        _save(session_factory, state, speaker)
        yield _frame({"type": "error", "message": str(e)})
        yield _frame({"type": "done", "message": message})
        return

    message = state.finalize()
    _save(session_factory, state, speaker)

    if state.needs_title and message["text"]:
        state.title = await gemini.generate_title(f"{prompt}\n\n{message['text']}")
        state.needs_title = False
        _save(session_factory, state, speaker)
        yield _frame({"type": "title", "title": state.title})

    yield _frame({"type": "done", "message": message})
