import json
import logging
import httpx
from typing import AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class ChatApiClient:
    """Thin async wrapper over the backend HTTP API for one signed-in user."""

    def __init__(self, base_url: str, user_id: str, email: str = "", name: str = "", surname: str = "",
                 http: Optional[httpx.AsyncClient] = None):
        headers = {"X-User-Id": user_id}
        if email:
            headers["X-User-Email"] = email
        if name:
            headers["X-User-Name"] = name
        if surname:
            headers["X-User-Surname"] = surname

        if http is None:
            http = httpx.AsyncClient(base_url=base_url, timeout=60.0)
        http.headers.update(headers)
        self._http = http

    async def aclose(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    @staticmethod
    def _check(response: httpx.Response):
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(response.status_code, str(detail))
        return response

    # ── Conversations ──
    async def list_conversations(self) -> List[Dict]:
        return self._check(await self._http.get("/chat/conversations")).json()

    async def get_conversation(self, conversation_id: str) -> Dict:
        return self._check(await self._http.get(f"/chat/conversations/{conversation_id}")).json()

    async def rename_conversation(self, conversation_id: str, title: str) -> Dict:
        response = await self._http.put(f"/chat/conversations/{conversation_id}", json={"title": title})
        return self._check(response).json()

    async def delete_conversation(self, conversation_id: str):
        self._check(await self._http.delete(f"/chat/conversations/{conversation_id}"))

    async def stream_chat(self, text: str, conversation_id: Optional[str] = None, image: Optional[str] = None,
                          image_mime_type: Optional[str] = None, file_id: Optional[str] = None) -> AsyncIterator[Dict]:
        """Yield decoded SSE events from POST /chat."""
        payload = {"text": text, "conversation_id": conversation_id, "image": image,
                   "image_mime_type": image_mime_type, "file_id": file_id}
        async with self._http.stream("POST", "/chat", json=payload) as response:
            if response.status_code != 200:
                await response.aread()
                self._check(response)
            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue
                try:
                    yield json.loads(line[6:])
                except json.JSONDecodeError:
                    logger.warning("[Client] Skipping malformed event: %s", line[:100])

    # ── Tasks ──
    async def list_tasks(self) -> List[Dict]:
        return self._check(await self._http.get("/projects")).json()

    async def add_task(self, text: str) -> Dict:
        return self._check(await self._http.post("/projects", json={"text": text})).json()

    async def set_task_completed(self, task_id: str, completed: bool) -> Dict:
        response = await self._http.patch(f"/projects/{task_id}", json={"completed": completed})
        return self._check(response).json()

    async def delete_task(self, task_id: str):
        self._check(await self._http.delete(f"/projects/{task_id}"))

    # ── Files ──
    async def list_files(self) -> List[Dict]:
        return self._check(await self._http.get("/files")).json()

    async def upload_file(self, name: str, content: bytes, content_type: str) -> Dict:
        response = await self._http.post("/files", files={"file": (name, content, content_type)})
        return self._check(response).json()

    async def get_file_content(self, file_id: str) -> Dict:
        return self._check(await self._http.get(f"/files/{file_id}/content")).json()

    async def delete_file(self, file_id: str):
        self._check(await self._http.delete(f"/files/{file_id}"))
