"""Tests for conversation title generation."""
import os
import sys
import pytest
from unittest.mock import patch, MagicMock, AsyncMock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))
from services.gemini import generate_title, DEFAULT_TITLE


def _mock_client(*responses):
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(side_effect=list(responses))
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client


def _response(status_code, text=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    response.json.return_value = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return response


class TestTitleGeneration:
    """Tests for generate_title()."""

    @pytest.mark.asyncio
    @patch("services.gemini.httpx.AsyncClient")
    async def test_title_generation_success(self, mock_client_class):
        mock_client = _mock_client(_response(200, "Weather Forecast Query"))
        mock_client_class.return_value = mock_client

        title = await generate_title("What's the weather?\n\nSunny.", models=["m1", "m2"])

        assert title == "Weather Forecast Query"
        assert mock_client.post.call_count == 1
        url = mock_client.post.call_args[0][0]
        assert url.endswith("/models/m1:generateContent")
        payload = mock_client.post.call_args.kwargs["json"]
        prompt = payload["contents"][0]["parts"][0]["text"]
        assert "5 words maximum" in prompt
        assert '"What\'s the weather?\n\nSunny."' in prompt

    @pytest.mark.asyncio
    @patch("services.gemini.httpx.AsyncClient")
    async def test_title_strips_quotes_and_markdown(self, mock_client_class):
        mock_client_class.return_value = _mock_client(_response(200, '## "Weather Query"**'))

        title = await generate_title("What's the weather?", models=["m1", "m2"])

        assert title == "Weather Query"
        assert '"' not in title and "*" not in title and "#" not in title

    @pytest.mark.asyncio
    @patch("services.gemini.httpx.AsyncClient")
    async def test_title_falls_back_to_backup_model(self, mock_client_class):
        mock_client = _mock_client(_response(503), _response(200, "Backup Title"))
        mock_client_class.return_value = mock_client

        title = await generate_title("Hello", models=["m1", "m2"])

        assert title == "Backup Title"
        urls = [call[0][0] for call in mock_client.post.call_args_list]
        assert urls[0].endswith("/models/m1:generateContent")
        assert urls[1].endswith("/models/m2:generateContent")

    @pytest.mark.asyncio
    @patch("services.gemini.httpx.AsyncClient")
    async def test_title_defaults_when_every_model_fails(self, mock_client_class):
        mock_client_class.return_value = _mock_client(Exception("Connection refused"), _response(500))

        # Should not raise
        title = await generate_title("Test", models=["m1", "m2"])

        assert title == DEFAULT_TITLE

    @pytest.mark.asyncio
    async def test_title_from_emulator(self, emulator):
        title = await generate_title("Plan my clinic campaign\n\nSure, here is a plan.")
        assert title == "Plan my clinic campaign"
