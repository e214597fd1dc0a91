import json
import os
import tempfile

import pytest

# Configure the process before any bugscope module reads the environment.
_DB_DIR = tempfile.mkdtemp(prefix="bugscope-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["RATE_LIMIT_AI"] = "1000/minute"

from fastapi.testclient import TestClient  # noqa: E402

from bugscope.ai import AIAnalyzer  # noqa: E402


class FakeCompletion:
    """Stand-in completion capability that records every call.

    ``response`` is returned as-is when it is a string, JSON-encoded
    otherwise. ``error`` is raised instead when set.
    """

    def __init__(self, response=None, error=None):
        self.response = {} if response is None else response
        self.error = error
        self.calls = []

    async def complete(self, *, system, prompt, temperature):
        self.calls.append(
            {"system": system, "prompt": prompt, "temperature": temperature}
        )
        if self.error is not None:
            raise self.error
        if isinstance(self.response, str):
            return self.response
        return json.dumps(self.response)


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def analyzer(fake_completion):
    return AIAnalyzer(fake_completion)


@pytest.fixture(scope="session")
def client():
    from bugscope.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api(client, fake_completion):
    """Test client whose routes use ``fake_completion`` for AI calls."""
    from bugscope.main import app, get_analyzer

    app.dependency_overrides[get_analyzer] = lambda: AIAnalyzer(fake_completion)
    yield client
    app.dependency_overrides.clear()
