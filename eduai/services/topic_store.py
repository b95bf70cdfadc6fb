"""Topic persistence.

Topics are stored either in the relational database (``SqlTopicStore``) or in
a single JSON document (``JsonFileTopicStore`` in ``file_topic_store``). Both
backends share the validation, slug and ownership rules defined here so the
HTTP layer can use either interchangeably.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eduai.core import errors
from eduai.db.sessions import get_db
from eduai.models.topic import Topic
from eduai.utils.slug import generate_unique_slug, slugify

logger = logging.getLogger(__name__)

SLUG_TAKEN_MSG = "This slug is already in use. Please choose another."
INVALID_LEVEL_MSG = "Invalid level. Must be Beginner, Intermediate, or Advanced."


class Level(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


LEVELS = [level.value for level in Level]


def parse_level(value) -> Level:
    """Return the ``Level`` for ``value`` or raise ValidationError."""
    try:
        return Level(value)
    except ValueError:
        raise errors.ValidationError(INVALID_LEVEL_MSG)


def progress_key(slug: str) -> str:
    """Client-local storage key holding completion state for a topic."""
    return f"progress-{slug}"


def empty_content() -> Dict[str, List[str]]:
    return {level: [] for level in LEVELS}


def normalize_content(content) -> Dict[str, List[str]]:
    """Check that content has a list of strings for every level."""
    if not isinstance(content, dict):
        raise errors.ValidationError("Topic content must be an object keyed by level.")

    normalized = {}
    for level in LEVELS:
        items = content.get(level)
        if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
            raise errors.ValidationError(f"Topic content for {level} must be a list of strings.")
        normalized[level] = list(items)
    return normalized


class TopicRecord(BaseModel):
    """A stored topic, independent of the backend holding it."""
    id: str
    user_id: int
    title: str
    slug: str
    description: Optional[str] = None
    level: str
    content: Dict[str, List[str]]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, topic: Topic) -> "TopicRecord":
        return cls(
            id=str(topic.id),
            user_id=topic.user_id,
            title=topic.title,
            slug=topic.slug,
            description=topic.description,
            level=topic.level,
            content=topic.content or empty_content(),
            created_at=topic.created_at,
            updated_at=topic.updated_at,
        )


class TopicPatch(BaseModel):
    """Fields an owner may change on an existing topic."""
    title: Optional[str] = None
    description: Optional[str] = None
    level: Optional[str] = None

    def is_empty(self) -> bool:
        return self.title is None and self.description is None and self.level is None


class TopicStore(ABC):
    """Operations every topic backend provides."""

    def __init__(self, max_attempts: int = 10):
        self.max_attempts = max_attempts

    @abstractmethod
    def list_topics(self) -> List[TopicRecord]:
        ...

    @abstractmethod
    def get_topic_by_slug(self, slug: str) -> TopicRecord:
        ...

    @abstractmethod
    def create_topic(
        self,
        user_id: int,
        title: str,
        level: str,
        description: Optional[str] = None,
        content: Optional[dict] = None,
        slug: Optional[str] = None,
    ) -> TopicRecord:
        ...

    @abstractmethod
    def update_topic(self, slug: str, user_id: int, patch: TopicPatch) -> TopicRecord:
        ...

    @abstractmethod
    def delete_topic(self, slug: str, user_id: int) -> TopicRecord:
        ...

    # Shared rules

    def _clean_title(self, title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise errors.ValidationError("Topic title cannot be empty.")
        return title

    def _new_slug(self, title: str, requested: Optional[str], existing: Iterable[str]) -> str:
        """Requested slugs must be free; derived slugs retry with a numeric suffix."""
        if requested:
            slug = slugify(requested)
            if slug in set(existing):
                raise errors.ConflictError(SLUG_TAKEN_MSG)
            return slug
        return self._unique_slug(slugify(title), existing)

    def _unique_slug(self, base: str, existing: Iterable[str]) -> str:
        result = generate_unique_slug(base, existing, self.max_attempts)
        if not result.ok:
            logger.warning("Slug space exhausted for %r after %d attempts", base, self.max_attempts)
            raise errors.ValidationError("Could not generate unique slug.")
        return result.slug

    def _check_owner(self, owner_id: int, user_id: int, slug: str) -> None:
        if owner_id != user_id:
            logger.info("User %s denied access to topic %s owned by %s", user_id, slug, owner_id)
            raise errors.ForbiddenError("You are not allowed to modify this topic.")


class SqlTopicStore(TopicStore):
    """Topics as rows of the ``topics`` table."""

    def __init__(self, db: Session, max_attempts: int = 10):
        super().__init__(max_attempts)
        self.db = db

    def list_topics(self) -> List[TopicRecord]:
        try:
            topics = self.db.query(Topic).order_by(Topic.created_at.desc()).all()
        except SQLAlchemyError as e:
            logger.exception("Error loading topics")
            raise errors.ServerError("Server error while loading topics.", details=str(e))
        return [TopicRecord.from_model(topic) for topic in topics]

    def get_topic_by_slug(self, slug: str) -> TopicRecord:
        return TopicRecord.from_model(self._get(slug))

    def create_topic(self, user_id, title, level, description=None, content=None, slug=None):
        title = self._clean_title(title)
        level = parse_level(level)
        content = normalize_content(content) if content is not None else empty_content()
        slug = self._new_slug(title, slug, self._slugs_like(slugify(slug or title)))

        topic = Topic(
            user_id=user_id,
            title=title,
            slug=slug,
            description=description or None,
            level=level.value,
            content=content,
        )
        self.db.add(topic)
        self._commit()
        self.db.refresh(topic)
        return TopicRecord.from_model(topic)

    def update_topic(self, slug, user_id, patch):
        topic = self._get(slug)
        self._check_owner(topic.user_id, user_id, slug)

        if patch.title is not None:
            title = self._clean_title(patch.title)
            if title != topic.title:
                base = slugify(title)
                existing = self._slugs_like(base) - {topic.slug}
                topic.slug = self._unique_slug(base, existing)
                topic.title = title
        if patch.description is not None:
            topic.description = patch.description or None
        if patch.level is not None:
            topic.level = parse_level(patch.level).value
        topic.updated_at = datetime.utcnow()

        self._commit()
        self.db.refresh(topic)
        return TopicRecord.from_model(topic)

    def delete_topic(self, slug, user_id):
        topic = self._get(slug)
        self._check_owner(topic.user_id, user_id, slug)

        record = TopicRecord.from_model(topic)
        self.db.delete(topic)
        self._commit()
        return record

    def _get(self, slug: str) -> Topic:
        try:
            topic = self.db.query(Topic).filter(Topic.slug == slug).first()
        except SQLAlchemyError as e:
            logger.exception("Error loading topic %s", slug)
            raise errors.ServerError("Server error while loading the topic.", details=str(e))
        if topic is None:
            raise errors.NotFoundError("Topic not found.")
        return topic

    def _slugs_like(self, base: str) -> set:
        try:
            rows = self.db.query(Topic.slug).filter(
                or_(Topic.slug == base, Topic.slug.like(f"{base}-%"))
            ).all()
        except SQLAlchemyError as e:
            logger.exception("Error loading slugs like %s", base)
            raise errors.ServerError("Server error while checking the slug.", details=str(e))
        return {row[0] for row in rows}

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise self._integrity_error(e)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error saving topic")
            raise errors.ServerError("Server error while saving the topic.", details=str(e))

    def _integrity_error(self, e: IntegrityError) -> errors.AppError:
        """Map a constraint failure to the error the client should see."""
        reason = str(e.orig).lower()
        if "slug" in reason:
            return errors.ConflictError(SLUG_TAKEN_MSG)
        if "foreign key" in reason:
            logger.warning("Topic owner does not exist: %s", e.orig)
            return errors.NotFoundError("User not found.")
        logger.error("Constraint failure saving topic: %s", e.orig)
        return errors.ServerError("Server error while saving the topic.", details=str(e))


def get_topic_store(request: Request, db: Session = Depends(get_db)) -> TopicStore:
    """Dependency returning the configured topic backend."""
    settings = request.app.state.settings
    if settings.TOPIC_STORE == "file":
        return request.app.state.file_topic_store
    return SqlTopicStore(db, max_attempts=settings.SLUG_MAX_ATTEMPTS)
