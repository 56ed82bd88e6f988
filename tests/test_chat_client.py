import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))
from main import app
from chat_client.api import ApiError, ChatApiClient
from chat_client.conversations import APOLOGY_MESSAGE, ChatSession
from chat_client.tasks import TaskBoard


def _api(user_id: str) -> ChatApiClient:
    http = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    return ChatApiClient("http://test", user_id, name="Ada", http=http)


class TestChatSession:

    @pytest.mark.asyncio
    async def test_new_chat_adopts_server_ids_and_title(self, emulator):
        async with _api("client-user-1") as api:
            session = ChatSession(api)
            reply = await session.send_message("Hello")

            conv = session.active_conversation
            assert conv is not None
            assert not conv["id"].startswith("local-")
            assert conv["title"] == "Hello Echo: Hello"
            assert reply["text"] == "Echo: Hello"
            assert [m["sender"] for m in conv["messages"]] == ["user", "assistant"]
            assert session.is_loading is False

            server = await api.get_conversation(conv["id"])
            assert [m["id"] for m in server["messages"]] == [m["id"] for m in conv["messages"]]

            # Second message goes to the same conversation
            await session.send_message("Again")
            assert len(session.conversations) == 1
            assert [m["text"] for m in session.active_conversation["messages"]] == [
                "Hello", "Echo: Hello", "Again", "Echo: Again"
            ]

    @pytest.mark.asyncio
    async def test_transport_failure_leaves_apology_in_placeholder(self):
        api = MagicMock()

        async def broken_stream(*args, **kwargs):
            raise ApiError(500, "boom")
            yield

        api.stream_chat = broken_stream
        session = ChatSession(api)

        reply = await session.send_message("Hi")

        assert reply["text"] == APOLOGY_MESSAGE
        assert session.active_conversation["messages"][0]["text"] == "Hi"
        assert session.is_loading is False

    @pytest.mark.asyncio
    async def test_attached_file_reference_matches_server(self, emulator):
        async with _api("client-user-4") as api:
            meta = await api.upload_file("brief.pdf", b"%PDF-1.4", "application/pdf")
            session = ChatSession(api)

            await session.send_message("Summarise", file=meta)

            local_user = session.active_conversation["messages"][0]
            assert local_user["file"] == {"name": "brief.pdf", "type": "application/pdf"}
            server = await api.get_conversation(session.active_id)
            assert server["messages"][0]["file"] == local_user["file"]

    @pytest.mark.asyncio
    async def test_rename_and_delete_roll_back_on_failure(self):
        api = MagicMock()
        api.rename_conversation = AsyncMock(side_effect=ApiError(500, "down"))
        api.delete_conversation = AsyncMock(side_effect=ApiError(500, "down"))
        session = ChatSession(api)
        session.conversations = [
            {"id": "a", "title": "A", "messages": []},
            {"id": "b", "title": "B", "messages": []},
        ]
        session.select("b")

        assert await session.rename("b", "Renamed") is False
        assert session.conversations[1]["title"] == "B"

        assert await session.delete("b") is False
        assert [c["id"] for c in session.conversations] == ["a", "b"]
        assert session.active_id == "b"

    @pytest.mark.asyncio
    async def test_load_rename_delete_against_server(self, emulator):
        async with _api("client-user-2") as api:
            session = ChatSession(api)
            await session.send_message("Keep me")
            conv_id = session.active_id

            fresh = ChatSession(api)
            await fresh.load()
            assert [c["id"] for c in fresh.conversations] == [conv_id]

            assert await fresh.rename(conv_id, "Renamed") is True
            assert (await api.get_conversation(conv_id))["title"] == "Renamed"

            fresh.select(conv_id)
            assert await fresh.delete(conv_id) is True
            assert fresh.active_id is None
            assert await api.list_conversations() == []

            fresh.start_new_chat()
            assert fresh.active_conversation is None


class TestTaskBoard:

    @pytest.mark.asyncio
    async def test_optimistic_add_is_visible_before_server_answers(self):
        api = MagicMock()
        seen_during_request = []

        async def add_task(text):
            seen_during_request.extend(t["id"] for t in board.tasks)
            return {"id": "srv-1", "text": text, "completed": False, "created_at": "2026-01-01T00:00:00"}

        api.add_task = add_task
        board = TaskBoard(api)

        saved = await board.add("Call patient")

        assert seen_during_request[0].startswith("temp-")
        assert saved["id"] == "srv-1"
        assert [t["id"] for t in board.tasks] == ["srv-1"]

    @pytest.mark.asyncio
    async def test_failed_add_removes_temporary_task(self):
        api = MagicMock()
        api.add_task = AsyncMock(side_effect=ApiError(500, "down"))
        board = TaskBoard(api)
        board.tasks = [{"id": "t1", "text": "existing", "completed": False}]

        assert await board.add("New") is None
        assert [t["id"] for t in board.tasks] == ["t1"]

    @pytest.mark.asyncio
    async def test_blank_task_is_ignored(self):
        api = MagicMock()
        api.add_task = AsyncMock()
        board = TaskBoard(api)

        assert await board.add("   ") is None
        api.add_task.assert_not_called()
        assert board.tasks == []

    @pytest.mark.asyncio
    async def test_failed_toggle_reverts(self):
        api = MagicMock()
        api.set_task_completed = AsyncMock(side_effect=ApiError(500, "down"))
        board = TaskBoard(api)
        board.tasks = [{"id": "t1", "text": "x", "completed": False}]

        assert await board.toggle("t1") is None
        assert board.tasks[0]["completed"] is False
        api.set_task_completed.assert_awaited_once_with("t1", True)

    @pytest.mark.asyncio
    async def test_failed_delete_restores_position(self):
        api = MagicMock()
        api.delete_task = AsyncMock(side_effect=ApiError(404, "Task not found"))
        board = TaskBoard(api)
        board.tasks = [{"id": "t1"}, {"id": "t2"}, {"id": "t3"}]

        assert await board.delete("t2") is False
        assert [t["id"] for t in board.tasks] == ["t1", "t2", "t3"]

    @pytest.mark.asyncio
    async def test_board_against_server(self):
        async with _api("client-user-3") as api:
            board = TaskBoard(api)
            first = await board.add("First")
            await board.add("Second")

            toggled = await board.toggle(first["id"])
            assert toggled["completed"] is True
            assert toggled["completed_at"] is not None

            assert await board.delete(first["id"]) is True

            reloaded = TaskBoard(api)
            await reloaded.load()
            assert [t["text"] for t in reloaded.tasks] == ["Second"]
