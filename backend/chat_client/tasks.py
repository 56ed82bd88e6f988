import time
import logging
from typing import Dict, List, Optional

from chat_client.api import ChatApiClient

logger = logging.getLogger(__name__)


class TaskBoard:
    """Task list with optimistic add/toggle/delete; each change is undone if the server rejects it."""

    def __init__(self, api: ChatApiClient):
        self.api = api
        self.tasks: List[Dict] = []

    def _index(self, task_id: str) -> Optional[int]:
        for index, task in enumerate(self.tasks):
            if task["id"] == task_id:
                return index
        return None

    async def load(self):
        try:
            self.tasks = await self.api.list_tasks()
        except Exception as e:
            logger.error("[Client] Loading tasks failed: %s", e)

    async def add(self, text: str) -> Optional[Dict]:
        if not text.strip():
            return None
        temp = {"id": f"temp-{int(time.time() * 1000)}", "text": text, "completed": False, "created_at": None}
        self.tasks.insert(0, temp)
        try:
            saved = await self.api.add_task(text)
        except Exception as e:
            logger.error("[Client] Adding task failed, removing it: %s", e)
            self.tasks = [t for t in self.tasks if t["id"] != temp["id"]]
            return None

        index = self._index(temp["id"])
        if index is not None:
            self.tasks[index] = saved
        return saved

    async def toggle(self, task_id: str) -> Optional[Dict]:
        index = self._index(task_id)
        if index is None:
            return None
        task = self.tasks[index]
        previous = task["completed"]
        task["completed"] = not previous
        try:
            saved = await self.api.set_task_completed(task_id, task["completed"])
        except Exception as e:
            logger.error("[Client] Toggling task %s failed, reverting: %s", task_id, e)
            task["completed"] = previous
            return None
        task.update(saved)
        return task

    async def delete(self, task_id: str) -> bool:
        index = self._index(task_id)
        if index is None:
            return False
        task = self.tasks.pop(index)
        try:
            await self.api.delete_task(task_id)
            return True
        except Exception as e:
            logger.error("[Client] Deleting task %s failed, restoring: %s", task_id, e)
            self.tasks.insert(index, task)
            return False
