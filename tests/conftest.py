"""Shared test fixtures for the repowiki test suite.

Tests run against a throwaway SQLite database created once per session;
every table is emptied before each test. The pipeline worker is disabled
so HTTP tests only exercise submission and readback.
"""

import inspect
import os
import tempfile

# Configure the environment before any repowiki imports read settings.
_TMP_DIR = tempfile.mkdtemp(prefix="repowiki-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["REPOSITORIES_DIR"] = os.path.join(_TMP_DIR, "repositories")
os.environ["WORKER_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["REPAIR_MERMAID"] = "false"

import pytest
from fastapi.testclient import TestClient

from repowiki.database import Base, SessionLocal, engine, get_db, init_db
from repowiki.generation.llm_client import ChatResult
from repowiki.main import app

init_db()


@pytest.fixture(autouse=True)
def _clean_tables():
    """Delete all rows before each test (children first)."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    """FastAPI TestClient with the DB dependency overridden to use the test session."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class ScriptedClient:
    """Stand-in for CompletionClient.

    ``handler(prompt, options)`` returns the reply text (or an awaitable of
    it) or raises. It may call ``options.tools`` to simulate file reads.
    """

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    async def complete(self, history, options):
        prompt = history[-1]["content"]
        self.calls.append((prompt, options))
        text = self.handler(prompt, options)
        if inspect.isawaitable(text):
            text = await text
        return ChatResult(text=text, prompt_tokens=11, completion_tokens=22)


@pytest.fixture()
def scripted_client():
    return ScriptedClient


@pytest.fixture()
def checkout(tmp_path):
    """A small repository checkout on disk (no .git needed for scanning)."""
    root = tmp_path / "acme" / "widgets"
    (root / "src" / "widgets").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "README.md").write_text("# Widgets\n\nMakes widgets.\n")
    (root / "src" / "widgets" / "__init__.py").write_text("VERSION = '1.0'\n")
    (root / "src" / "widgets" / "core.py").write_text("def make():\n    return 'widget'\n")
    (root / "docs" / "guide.md").write_text("Guide\n")
    (root / "setup.cfg").write_text("[metadata]\nname = widgets\n")
    return root
