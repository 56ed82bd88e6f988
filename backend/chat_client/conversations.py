import time
import logging
from typing import Dict, List, Optional

from chat_client.api import ChatApiClient

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "I'm sorry, I encountered an error while processing your request. Please try again."
DEFAULT_TITLE = "New Conversation"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatSession:
    """
    Local mirror of the user's conversations.

    Sending a message updates local state before the server answers: the
    user message and an empty assistant placeholder are appended at once,
    then server events fill the placeholder and swap local ids for the
    server's ids.
    """

    def __init__(self, api: ChatApiClient):
        self.api = api
        self.conversations: List[Dict] = []
        self.active_id: Optional[str] = None
        self.is_loading = False

    @property
    def active_conversation(self) -> Optional[Dict]:
        return self._find(self.active_id) if self.active_id else None

    def _find(self, conversation_id: str) -> Optional[Dict]:
        for conv in self.conversations:
            if conv["id"] == conversation_id:
                return conv
        return None

    async def load(self):
        try:
            self.conversations = await self.api.list_conversations()
        except Exception as e:
            logger.error("[Client] Loading conversations failed: %s", e)

    def select(self, conversation_id: str):
        self.active_id = conversation_id

    def start_new_chat(self):
        self.active_id = None

    async def rename(self, conversation_id: str, title: str) -> bool:
        conv = self._find(conversation_id)
        if conv is None:
            return False
        previous = conv["title"]
        conv["title"] = title
        try:
            await self.api.rename_conversation(conversation_id, title)
            return True
        except Exception as e:
            logger.error("[Client] Rename of %s failed, reverting: %s", conversation_id, e)
            conv["title"] = previous
            return False

    async def delete(self, conversation_id: str) -> bool:
        conv = self._find(conversation_id)
        if conv is None:
            return False
        index = self.conversations.index(conv)
        self.conversations.pop(index)
        was_active = self.active_id == conversation_id
        if was_active:
            self.active_id = None
        try:
            await self.api.delete_conversation(conversation_id)
            return True
        except Exception as e:
            logger.error("[Client] Delete of %s failed, restoring: %s", conversation_id, e)
            self.conversations.insert(index, conv)
            if was_active:
                self.active_id = conversation_id
            return False

    async def send_message(self, text: str, image: Optional[str] = None, image_mime_type: Optional[str] = None,
                           file_id: Optional[str] = None, file: Optional[Dict] = None) -> Dict:
        """
        Returns the assistant message once the stream ends.

        `file` is the metadata returned by an upload; it supplies `file_id`
        and gives the local user message the same `{name, type}` reference
        the server stores.
        """
        self.is_loading = True
        ts = _now_ms()
        user_message = {"id": f"msg-{ts}", "sender": "user", "text": text, "timestamp": ts}
        if image:
            user_message["image"] = image
            user_message["image_mime_type"] = image_mime_type
        elif file:
            file_id = file_id or file["id"]
            user_message["file"] = {"name": file["name"], "type": file["type"]}

        conv = self.active_conversation
        is_new = conv is None
        if is_new:
            conv = {"id": f"local-{ts}", "title": DEFAULT_TITLE, "messages": [], "created_at": None}
            self.conversations.insert(0, conv)
            self.active_id = conv["id"]

        placeholder = {"id": f"msg-{ts}-ai", "sender": "assistant", "text": "", "timestamp": ts}
        conv["messages"].extend([user_message, placeholder])

        try:
            async for event in self.api.stream_chat(
                text,
                conversation_id=None if is_new else conv["id"],
                image=image,
                image_mime_type=image_mime_type,
                file_id=file_id,
            ):
                self._apply_event(conv, user_message, placeholder, event)
        except Exception as e:
            logger.error("[Client] Sending message failed: %s", e)
            placeholder["text"] = APOLOGY_MESSAGE
        finally:
            self.is_loading = False
        return placeholder

    def _apply_event(self, conv: Dict, user_message: Dict, placeholder: Dict, event: Dict):
        kind = event.get("type")
        if kind == "start":
            server_id = event["conversation_id"]
            if conv["id"] != server_id:
                if self.active_id == conv["id"]:
                    self.active_id = server_id
                conv["id"] = server_id
            user_message["id"] = event["user_message_id"]
            placeholder["id"] = event["message_id"]
        elif kind == "chunk":
            placeholder["text"] += event["text"]
        elif kind == "title":
            conv["title"] = event["title"]
        elif kind == "error":
            logger.warning("[Client] Server reported a generation error: %s", event.get("message"))
        elif kind == "done":
            placeholder.update(event["message"])
