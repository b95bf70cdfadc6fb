import pytest

from conftest import FakeAIClient, TOPIC_CONTENT_REPLY


def test_topic_content(client):
    response = client.post("/api/ai/topic-content", json={"topicName": "Java", "baseLevel": "Beginner"})
    assert response.status_code == 200
    assert response.json() == TOPIC_CONTENT_REPLY


@pytest.mark.parametrize("body", [
    {"baseLevel": "Beginner"},
    {"topicName": "Java"},
    {"topicName": "Java", "baseLevel": "Expert"},
])
def test_topic_content_validates_input(client, body):
    assert client.post("/api/ai/topic-content", json=body).status_code == 400


@pytest.mark.parametrize("ai_client", [FakeAIClient(reply={"answer": "Use a for loop."})])
def test_tutor(client, ana_headers, ai_client):
    response = client.post(
        "/api/ai/tutor",
        json={"topic": "Java", "level": "Beginner", "question": "How do I loop?"},
        headers=ana_headers,
    )
    assert response.status_code == 200
    assert response.json() == {"answer": "Use a for loop."}


@pytest.mark.parametrize("ai_client", [FakeAIClient(error=RuntimeError("down"))])
def test_tutor_fallback(client, ana_headers, ai_client):
    response = client.post(
        "/api/ai/tutor",
        json={"topic": "Java", "question": "How do I loop?"},
        headers=ana_headers,
    )
    assert response.status_code == 200
    assert "Java" in response.json()["answer"]


def test_tutor_requires_token(client):
    response = client.post("/api/ai/tutor", json={"topic": "Java", "question": "?"})
    assert response.status_code == 401
