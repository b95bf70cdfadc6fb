"""HTTP client for the EduAI API with a local read-through cache.

The server is the only source of truth. The ``topics-cache`` entry in local
storage holds the last server copy of each topic and is replaced or evicted
whenever a server response says something newer about it.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from eduai.client import progress
from eduai.client.local_storage import LocalStorage

logger = logging.getLogger(__name__)

AUTH_FLAG_KEY = "isAuthenticated"
TOKEN_KEY = "authToken"
USER_NAME_KEY = "userName"
USER_EMAIL_KEY = "userEmail"
THEME_KEY = "theme"
TOPICS_CACHE_KEY = "topics-cache"
PENDING_DELETIONS_KEY = "pending-deletions"

THEMES = ("light", "dark")


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, msg: str, details: Optional[str] = None):
        super().__init__(f"{status_code}: {msg}")
        self.status_code = status_code
        self.msg = msg
        self.details = details


class EduAIClient:
    def __init__(
        self,
        base_url: str,
        storage: LocalStorage,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.storage = storage
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self.http.close()

    # Transport

    def _request(self, method: str, path: str, auth: bool = False, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if auth:
            token = self.storage.get_item(TOKEN_KEY)
            if token:
                headers["Authorization"] = f"Bearer {token}"

        response = self.http.request(method, path, headers=headers, **kwargs)
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        msg = body.get("msg") if isinstance(body, dict) else None
        details = body.get("details") if isinstance(body, dict) else None
        raise ApiError(response.status_code, msg or response.reason_phrase, details)

    # Session

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/api/auth/register",
            json={"name": name, "email": email, "password": password},
        )["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.storage.set_item(AUTH_FLAG_KEY, True)
        self.storage.set_item(TOKEN_KEY, data["token"])
        self._remember_user(data["user"])
        return data["user"]

    def logout(self) -> None:
        for key in (AUTH_FLAG_KEY, TOKEN_KEY, USER_NAME_KEY, USER_EMAIL_KEY):
            self.storage.remove_item(key)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.storage.get_item(AUTH_FLAG_KEY)) and bool(self.storage.get_item(TOKEN_KEY))

    def cached_user(self) -> Optional[Dict[str, str]]:
        if not self.is_authenticated:
            return None
        return {
            "name": self.storage.get_item(USER_NAME_KEY),
            "email": self.storage.get_item(USER_EMAIL_KEY),
        }

    def update_profile(self, name: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        body = {key: value for key, value in (("name", name), ("email", email)) if value is not None}
        user = self._request("PUT", "/api/profile", auth=True, json=body)["user"]
        self._remember_user(user)
        return user

    def _remember_user(self, user: Dict[str, Any]) -> None:
        self.storage.set_item(USER_NAME_KEY, user["name"])
        self.storage.set_item(USER_EMAIL_KEY, user["email"])

    # Topics

    def _cache(self) -> Dict[str, Dict[str, Any]]:
        cache = self.storage.get_item(TOPICS_CACHE_KEY, {})
        return cache if isinstance(cache, dict) else {}

    def _cache_put(self, topic: Dict[str, Any], replaces: Optional[str] = None) -> None:
        cache = self._cache()
        if replaces:
            cache.pop(replaces, None)
        cache[topic["slug"]] = topic
        self.storage.set_item(TOPICS_CACHE_KEY, cache)

    def _forget(self, slug: str) -> None:
        cache = self._cache()
        if cache.pop(slug, None) is not None:
            self.storage.set_item(TOPICS_CACHE_KEY, cache)
        self.storage.remove_item(progress.progress_key(slug))

    def cached_topics(self) -> List[Dict[str, Any]]:
        return list(self._cache().values())

    def list_topics(self) -> List[Dict[str, Any]]:
        """Fetch all topics and replace the cache with the server's list."""
        topics = self._request("GET", "/api/topics")
        self.storage.set_item(TOPICS_CACHE_KEY, {topic["slug"]: topic for topic in topics})
        return topics

    def get_topic(self, slug: str, refresh: bool = False) -> Dict[str, Any]:
        """Return the cached topic, fetching it when absent or when ``refresh`` is set."""
        if not refresh:
            cached = self._cache().get(slug)
            if cached is not None:
                return cached

        try:
            topic = self._request("GET", f"/api/topics/{slug}")
        except ApiError as e:
            if e.status_code == 404:
                self._forget(slug)
            raise
        self._cache_put(topic)
        return topic

    def create_topic(
        self,
        title: str,
        level: str,
        description: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {"title": title, "level": level}
        if description is not None:
            body["description"] = description
        if slug is not None:
            body["slug"] = slug
        topic = self._request("POST", "/api/topics", auth=True, json=body)
        self._cache_put(topic)
        if self.storage.get_item(progress.progress_key(topic["slug"])) is None:
            self.storage.set_item(progress.progress_key(topic["slug"]), {})
        return topic

    def update_topic(self, slug: str, **changes) -> Dict[str, Any]:
        """Update title/description/level; moves cache and progress if the slug changes."""
        topic = self._request("PUT", f"/api/topics/{slug}", auth=True, json=changes)
        new_slug = topic["slug"]
        self._cache_put(topic, replaces=slug)
        if new_slug != slug:
            old_key = progress.progress_key(slug)
            saved = self.storage.get_item(old_key)
            if saved is not None:
                self.storage.set_item(progress.progress_key(new_slug), saved)
                self.storage.remove_item(old_key)
        return topic

    def delete_topic(self, slug: str) -> Dict[str, Any]:
        """
        Delete a topic and drop its cache entry and progress.

        The slug sits in ``pending-deletions`` until the server answers, so
        an interrupted delete can be retried with ``sync_pending_deletions``.
        A 403 is final: the slug leaves the pending list but the topic stays
        cached.
        """
        pending = self._pending_deletions()
        if slug not in pending:
            self.storage.set_item(PENDING_DELETIONS_KEY, pending + [slug])

        try:
            result = self._request("DELETE", f"/api/topics/{slug}", auth=True)
        except ApiError as e:
            if e.status_code == 404:
                self._finish_deletion(slug)
            elif e.status_code == 403:
                self._drop_pending(slug)
            raise

        self._finish_deletion(slug)
        return result

    def sync_pending_deletions(self) -> List[str]:
        """Retry deletions not yet confirmed; returns the slugs that completed."""
        done = []
        for slug in self._pending_deletions():
            try:
                self.delete_topic(slug)
            except ApiError as e:
                if e.status_code == 403:
                    logger.warning("Deletion of %s refused, dropped: %s", slug, e.msg)
                    continue
                if e.status_code != 404:
                    logger.warning("Deletion of %s still pending: %s", slug, e.msg)
                    continue
            except httpx.HTTPError as e:
                logger.warning("Deletion of %s still pending: %s", slug, e)
                continue
            done.append(slug)
        return done

    def _pending_deletions(self) -> List[str]:
        pending = self.storage.get_item(PENDING_DELETIONS_KEY, [])
        return pending if isinstance(pending, list) else []

    def _finish_deletion(self, slug: str) -> None:
        self._forget(slug)
        self._drop_pending(slug)

    def _drop_pending(self, slug: str) -> None:
        remaining = [item for item in self._pending_deletions() if item != slug]
        self.storage.set_item(PENDING_DELETIONS_KEY, remaining)

    # Learning

    def generate_quiz(self, slug: str, level: Optional[str] = None, num_questions: int = 5) -> Dict[str, Any]:
        body = {"numQuestions": num_questions}
        if level is not None:
            body["level"] = level
        return self._request("POST", f"/api/topics/{slug}/quiz", auth=True, json=body)

    def ask_tutor(self, topic: str, level: str, question: str) -> str:
        return self._request(
            "POST", "/api/ai/tutor", auth=True,
            json={"topic": topic, "level": level, "question": question},
        )["answer"]

    def mark_item(self, slug: str, level: str, index: int, done: bool = True) -> Dict[str, bool]:
        return progress.set_item_done(self.storage, slug, level, index, done)

    def completion(self, slug: str, level: Optional[str] = None) -> int:
        """Completion percentage of a cached topic, for one level or overall."""
        topic = self.get_topic(slug)
        saved = progress.load_progress(self.storage, slug)
        if level is None:
            return progress.overall_completion(topic["content"], saved)
        return progress.level_completion(topic["content"], saved, level)

    # Preferences

    def get_theme(self) -> str:
        theme = self.storage.get_item(THEME_KEY)
        return theme if theme in THEMES else "light"

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self.storage.set_item(THEME_KEY, theme)

    def toggle_theme(self) -> str:
        theme = "dark" if self.get_theme() == "light" else "light"
        self.set_theme(theme)
        return theme
