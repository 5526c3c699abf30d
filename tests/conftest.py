"""
Pytest configuration and shared fixtures

Environment is set before anything under src is imported so the global
settings and database point at a throwaway SQLite file.
"""
import os
import tempfile
from pathlib import Path

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="persona-chat-tests-"))

os.environ["DATABASE_PATH"] = str(_TEST_DATA_DIR / "api.db")
os.environ["AUTO_MIGRATE"] = "true"
os.environ["LLM_API_KEY"] = ""
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.core.dependencies import get_llm_client  # noqa: E402
from src.main import app  # noqa: E402
from tests.mock_providers import MockLLMClient  # noqa: E402


@pytest.fixture(scope="module")
def mock_llm():
    """Mock language model shared by one test module"""
    return MockLLMClient()


@pytest.fixture(scope="module")
def client(mock_llm):
    """
    FastAPI TestClient - works like HTTP client but doesn't need a server
    """
    app.dependency_overrides[get_llm_client] = lambda: mock_llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
