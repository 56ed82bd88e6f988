import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))

import pytest
from httpx import AsyncClient, ASGITransport
from main import app
from conftest import user_headers

@pytest.mark.asyncio
async def test_read_root():
    """Verify that the FastAPI root endpoint works and routes are mounted"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json() == {"status": "Ceku backend is running", "provider": "emulator"}

@pytest.mark.asyncio
async def test_chat_conversations_route_exists():
    """Verify that the chat router is correctly wired and DB connects"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/chat/conversations", headers=user_headers("health-user"))
        assert response.status_code == 200
        assert response.json() == []

@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        for path in ["/chat/conversations", "/projects", "/files", "/profile"]:
            response = await client.get(path)
            assert response.status_code == 401, path

@pytest.mark.asyncio
async def test_models_route_exists(emulator):
    """Verify the models router lists the emulator's models with their roles"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/models")
        assert response.status_code == 200
        data = response.json()
        assert [m["id"] for m in data] == ["gemini-2.5-flash", "gemini-2.0-flash"]
        assert data[0]["role"] == "primary"
        assert data[1]["role"] == "backup"
