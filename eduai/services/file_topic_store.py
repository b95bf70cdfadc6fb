"""Topic store backed by a single JSON document.

The file holds a JSON array of topic records. Every operation reads the whole
collection and every mutation writes it back, so each read-modify-write runs
under a process-local lock plus an advisory ``fcntl`` lock on a sidecar
``.lock`` file, and writes replace the file atomically.
"""
import fcntl
import json
import logging
import os
import tempfile
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from eduai.core import errors
from eduai.services.topic_store import (
    TopicRecord,
    TopicStore,
    empty_content,
    normalize_content,
    parse_level,
)
from eduai.utils.slug import slugify

logger = logging.getLogger(__name__)


class JsonFileTopicStore(TopicStore):

    def __init__(self, path, max_attempts: int = 10):
        super().__init__(max_attempts)
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self._lock = threading.Lock()

    @contextmanager
    def _locked(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with open(self.lock_path, "a") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _read(self, strict: bool) -> List[TopicRecord]:
        """
        Load the collection. A missing or blank file is an empty collection.

        Malformed content is logged; with ``strict`` it raises ServerError so a
        mutation never overwrites data it could not parse.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.exception("Could not read topic store %s", self.path)
            raise errors.ServerError("Server error while reading topics.", details=str(e))

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("expected a JSON array of topics")
            return [TopicRecord.model_validate(item) for item in data]
        except ValueError as e:
            logger.error("Malformed topic store %s: %s", self.path, e)
            if strict:
                raise errors.ServerError("Topic store is corrupted.", details=str(e))
            return []

    def _write(self, topics: List[TopicRecord]) -> None:
        payload = json.dumps([topic.model_dump(mode="json") for topic in topics], indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.exception("Could not write topic store %s", self.path)
            raise errors.ServerError("Server error while saving topics.", details=str(e))

    def list_topics(self) -> List[TopicRecord]:
        with self._locked():
            topics = self._read(strict=False)
        return sorted(topics, key=lambda topic: topic.created_at, reverse=True)

    def get_topic_by_slug(self, slug: str) -> TopicRecord:
        with self._locked():
            topics = self._read(strict=False)
        return _find(topics, slug)

    def create_topic(self, user_id, title, level, description=None, content=None, slug=None):
        title = self._clean_title(title)
        level = parse_level(level)
        content = normalize_content(content) if content is not None else empty_content()

        with self._locked():
            topics = self._read(strict=True)
            slug = self._new_slug(title, slug, [topic.slug for topic in topics])
            now = _utcnow()
            record = TopicRecord(
                id=uuid.uuid4().hex,
                user_id=user_id,
                title=title,
                slug=slug,
                description=description or None,
                level=level.value,
                content=content,
                created_at=now,
                updated_at=now,
            )
            topics.append(record)
            self._write(topics)

        logger.info("Topic %s stored in %s", record.slug, self.path)
        return record

    def update_topic(self, slug, user_id, patch):
        with self._locked():
            topics = self._read(strict=True)
            current = _find(topics, slug)
            self._check_owner(current.user_id, user_id, slug)

            changes = {"updated_at": _utcnow()}
            if patch.title is not None:
                title = self._clean_title(patch.title)
                if title != current.title:
                    others = [topic.slug for topic in topics if topic.slug != current.slug]
                    changes["slug"] = self._unique_slug(slugify(title), others)
                    changes["title"] = title
            if patch.description is not None:
                changes["description"] = patch.description or None
            if patch.level is not None:
                changes["level"] = parse_level(patch.level).value

            updated = current.model_copy(update=changes)
            topics = [updated if topic.slug == current.slug else topic for topic in topics]
            self._write(topics)

        return updated

    def delete_topic(self, slug, user_id):
        with self._locked():
            topics = self._read(strict=True)
            current = _find(topics, slug)
            self._check_owner(current.user_id, user_id, slug)
            self._write([topic for topic in topics if topic.slug != current.slug])

        return current


def _find(topics: List[TopicRecord], slug: str) -> TopicRecord:
    for topic in topics:
        if topic.slug == slug:
            return topic
    raise errors.NotFoundError("Topic not found.")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
