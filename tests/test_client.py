import pytest

from conftest import TOPIC_CONTENT_REPLY
from eduai.client import ApiError, EduAIClient, LocalStorage
from eduai.client import progress


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "local-storage.json")


@pytest.fixture
def edu(client, storage):
    return EduAIClient("http://testserver", storage, http=client)


@pytest.fixture
def ana(edu):
    edu.register("Ana", "ana@x.com", "secret1")
    edu.login("ana@x.com", "secret1")
    return edu


def other_user_client(client, tmp_path):
    other = EduAIClient("http://testserver", LocalStorage(tmp_path / "ben.json"), http=client)
    other.register("Ben", "ben@y.com", "secret1")
    other.login("ben@y.com", "secret1")
    return other


# LocalStorage

def test_local_storage_roundtrip(storage):
    assert storage.get_item("theme") is None
    storage.set_item("theme", "dark")
    storage.set_item("progress-java", {"Beginner-0": True})
    assert storage.get_item("theme") == "dark"
    assert storage.get_item("progress-java") == {"Beginner-0": True}
    assert sorted(storage.keys()) == ["progress-java", "theme"]

    storage.remove_item("theme")
    assert storage.get_item("theme", "light") == "light"
    storage.clear()
    assert storage.keys() == []


def test_local_storage_ignores_malformed_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{oops")
    storage = LocalStorage(path)
    assert storage.get_item("theme") is None
    storage.set_item("theme", "dark")
    assert storage.get_item("theme") == "dark"


# Progress

def test_completion_percentages():
    content = {"Beginner": ["a", "b", "c", "d"], "Intermediate": ["e"], "Advanced": []}
    saved = {"Beginner-0": True, "Beginner-1": True, "Beginner-2": False, "Intermediate-0": True}
    assert progress.level_completion(content, saved, "Beginner") == 50
    assert progress.level_completion(content, saved, "Intermediate") == 100
    assert progress.level_completion(content, saved, "Advanced") == 0
    assert progress.overall_completion(content, saved) == 60
    assert progress.overall_completion({"Beginner": [], "Intermediate": [], "Advanced": []}, {}) == 0


# Session

def test_login_caches_user(ana, storage):
    assert ana.is_authenticated
    assert storage.get_item("isAuthenticated") is True
    assert storage.get_item("authToken")
    assert ana.cached_user() == {"name": "Ana", "email": "ana@x.com"}


def test_failed_login_raises_api_error(edu):
    edu.register("Ana", "ana@x.com", "secret1")
    with pytest.raises(ApiError) as exc:
        edu.login("ana@x.com", "wrong")
    assert exc.value.status_code == 400
    assert exc.value.msg
    assert not edu.is_authenticated


def test_logout_clears_session(ana, storage):
    ana.set_theme("dark")
    ana.logout()
    assert not ana.is_authenticated
    assert ana.cached_user() is None
    assert storage.get_item("authToken") is None
    assert storage.get_item("theme") == "dark"


def test_update_profile_refreshes_cached_user(ana):
    ana.update_profile(name="Ana Maria")
    assert ana.cached_user()["name"] == "Ana Maria"


# Topics

def test_create_topic_caches_and_starts_progress(ana, storage):
    topic = ana.create_topic("Java Basics", "Beginner")
    assert topic["slug"] == "java-basics"
    assert [cached["slug"] for cached in ana.cached_topics()] == ["java-basics"]
    assert storage.get_item("progress-java-basics") == {}


def test_get_topic_reads_through_cache(ana, client):
    ana.create_topic("Java Basics", "Beginner")
    token = ana.storage.get_item("authToken")
    client.put(
        "/api/topics/java-basics",
        json={"description": "Changed elsewhere"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert ana.get_topic("java-basics")["description"] is None
    assert ana.get_topic("java-basics", refresh=True)["description"] == "Changed elsewhere"
    assert ana.get_topic("java-basics")["description"] == "Changed elsewhere"


def test_missing_topic_is_evicted(ana, client):
    ana.create_topic("Java Basics", "Beginner")
    token = ana.storage.get_item("authToken")
    client.delete("/api/topics/java-basics", headers={"Authorization": f"Bearer {token}"})

    with pytest.raises(ApiError) as exc:
        ana.get_topic("java-basics", refresh=True)
    assert exc.value.status_code == 404
    assert ana.cached_topics() == []


def test_list_topics_replaces_cache(ana, storage):
    storage.set_item("topics-cache", {"stale": {"slug": "stale"}})
    ana.create_topic("Java Basics", "Beginner")
    topics = ana.list_topics()
    assert [topic["slug"] for topic in topics] == ["java-basics"]
    assert [topic["slug"] for topic in ana.cached_topics()] == ["java-basics"]


def test_progress_tracking(ana):
    ana.create_topic("Java Basics", "Beginner")
    ana.mark_item("java-basics", "Beginner", 0)
    assert ana.completion("java-basics", "Beginner") == round(100 / len(TOPIC_CONTENT_REPLY["beginner"]))
    ana.mark_item("java-basics", "Beginner", 0, done=False)
    assert ana.completion("java-basics") == 0


def test_update_topic_moves_cache_and_progress(ana, storage):
    ana.create_topic("Java Basics", "Beginner")
    ana.mark_item("java-basics", "Beginner", 1)

    topic = ana.update_topic("java-basics", title="Java Fundamentals")
    assert topic["slug"] == "java-fundamentals"
    assert storage.get_item("progress-java-basics") is None
    assert storage.get_item("progress-java-fundamentals") == {"Beginner-1": True}
    assert [cached["slug"] for cached in ana.cached_topics()] == ["java-fundamentals"]


def test_delete_topic_clears_local_state(ana, storage):
    ana.create_topic("Java Basics", "Beginner")
    ana.mark_item("java-basics", "Beginner", 0)

    result = ana.delete_topic("java-basics")
    assert result["progressKey"] == "progress-java-basics"
    assert storage.get_item("progress-java-basics") is None
    assert ana.cached_topics() == []
    assert storage.get_item("pending-deletions") == []


def test_forbidden_delete_is_not_retried(ana, client, tmp_path, storage):
    ben = other_user_client(client, tmp_path)
    ana.create_topic("Java Basics", "Beginner")
    ben.get_topic("java-basics")

    with pytest.raises(ApiError) as exc:
        ben.delete_topic("java-basics")
    assert exc.value.status_code == 403
    assert ben.storage.get_item("pending-deletions") == []
    assert [cached["slug"] for cached in ben.cached_topics()] == ["java-basics"]

    ben.storage.set_item("pending-deletions", ["java-basics"])
    assert ben.sync_pending_deletions() == []
    assert ben.storage.get_item("pending-deletions") == []
    assert ana.get_topic("java-basics", refresh=True)["slug"] == "java-basics"


def test_sync_pending_deletions(ana, storage):
    ana.create_topic("Java Basics", "Beginner")
    ana.create_topic("Rust", "Advanced")
    storage.set_item("pending-deletions", ["java-basics", "already-gone"])

    assert ana.sync_pending_deletions() == ["java-basics", "already-gone"]
    assert storage.get_item("pending-deletions") == []
    assert [topic["slug"] for topic in ana.list_topics()] == ["rust"]


# Learning

def test_generate_quiz(ana):
    ana.create_topic("Java Basics", "Beginner")
    quiz = ana.generate_quiz("java-basics", num_questions=2)
    assert len(quiz["questions"]) == 2


def test_ask_tutor_without_ai_uses_fallback(ana):
    assert "Java" in ana.ask_tutor("Java", "Beginner", "What is a class?")


# Preferences

def test_theme(edu):
    assert edu.get_theme() == "light"
    assert edu.toggle_theme() == "dark"
    assert edu.get_theme() == "dark"
    with pytest.raises(ValueError):
        edu.set_theme("blue")
