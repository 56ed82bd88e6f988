import os
import sys
import tempfile

# Must run before any backend module is imported: database.py and settings.py read these at import time.
_TMP = tempfile.mkdtemp(prefix="ceku-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["DATA_DIR"] = os.path.join(_TMP, "data")
os.environ["LLM_BASE_URL"] = "http://emulator/v1beta"
os.environ["EMULATOR_URL"] = "http://emulator/v1beta"
os.environ["GEMINI_API_KEY"] = "test-key"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../backend")))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../docker/emulator")))

import httpx
import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import emulator_app
from models import db_models
from settings import settings

_RealAsyncClient = httpx.AsyncClient


def _emulator_client(*args, **kwargs):
    return _RealAsyncClient(transport=httpx.ASGITransport(app=emulator_app.app), base_url="http://emulator")


@pytest.fixture
def emulator():
    """Route every outbound httpx.AsyncClient to the in-process Gemini emulator."""
    emulator_app.reset()
    settings.set_llm_base_url("http://emulator/v1beta")
    settings.set_models(settings.DEFAULT_PRIMARY_MODEL, settings.DEFAULT_BACKUP_MODEL)
    with patch("services.gemini.httpx.AsyncClient", side_effect=_emulator_client):
        yield emulator_app
    emulator_app.reset()


@pytest.fixture
def session_factory():
    """In-memory database shared by every session the factory opens."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    db_models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db_models.Base.metadata.drop_all(bind=engine)
    engine.dispose()


def user_headers(user_id: str = "user-1", **extra):
    headers = {"X-User-Id": user_id}
    for key, value in extra.items():
        headers[f"X-User-{key.capitalize()}"] = value
    return headers
