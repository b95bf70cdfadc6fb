import json
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from eduai.core.config import Settings
from eduai.main import create_app
from eduai.services.content_generator import ContentGenerator


TOPIC_CONTENT_REPLY = {
    "beginner": ["What Java is", "Installing the JDK", "Hello world"],
    "intermediate": ["Collections", "Generics"],
    "advanced": ["Concurrency", "JVM tuning"],
}


class FakeAIClient:
    """Stands in for ``openai.OpenAI``; only ``chat.completions.create`` is used.

    ``reply`` may be a dict (sent as JSON), a raw string, or a callable taking
    the request kwargs. ``error`` is raised instead when set.
    """

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        reply = self.reply(kwargs) if callable(self.reply) else self.reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        message = SimpleNamespace(content=content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def topic_store_backend():
    return "sql"


@pytest.fixture
def settings(tmp_path, topic_store_backend):
    return Settings(
        _env_file=None,
        JWT_SECRET="test-secret",
        DATABASE_URL=f"sqlite:///{tmp_path / 'eduai.db'}",
        TOPIC_STORE=topic_store_backend,
        TOPIC_STORE_PATH=str(tmp_path / "topics.json"),
        OPENAI_API_KEY="test-key",
    )


@pytest.fixture
def ai_client():
    return FakeAIClient(reply=TOPIC_CONTENT_REPLY)


@pytest.fixture
def app(settings, ai_client):
    return create_app(settings, content_generator=ContentGenerator(settings, client=ai_client))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register_and_login(client, name="Ana", email="ana@x.com", password="secret1"):
    """Create an account and return bearer headers for it."""
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def ana_headers(client):
    return register_and_login(client)


@pytest.fixture
def ben_headers(client):
    return register_and_login(client, name="Ben", email="ben@y.com", password="hunter22")
