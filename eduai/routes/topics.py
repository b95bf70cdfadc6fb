"""Topic routes."""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from eduai.core import errors
from eduai.core.security import TokenUser, get_current_user
from eduai.services.content_generator import (
    MAX_QUIZ_QUESTIONS,
    MIN_QUIZ_QUESTIONS,
    ContentGenerator,
    QuizQuestion,
    get_content_generator,
)
from eduai.services.topic_store import (
    TopicPatch,
    TopicRecord,
    TopicStore,
    get_topic_store,
    parse_level,
    progress_key,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/topics", tags=["Topics"])


# Request/Response schemas
class CreateTopicRequest(BaseModel):
    title: Optional[str] = None
    level: Optional[str] = None
    description: Optional[str] = None
    slug: Optional[str] = None


class UpdateTopicRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    level: Optional[str] = None


class TopicResponse(BaseModel):
    id: str
    slug: str
    title: str
    description: Optional[str]
    level: str
    content: Dict[str, List[str]]
    userId: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: TopicRecord) -> "TopicResponse":
        return cls(
            id=record.id,
            slug=record.slug,
            title=record.title,
            description=record.description,
            level=record.level,
            content=record.content,
            userId=record.user_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class DeleteTopicResponse(BaseModel):
    msg: str
    slug: str
    progressKey: str


class QuizRequest(BaseModel):
    level: Optional[str] = None
    num_questions: int = Field(
        default=5, ge=MIN_QUIZ_QUESTIONS, le=MAX_QUIZ_QUESTIONS, alias="numQuestions"
    )

    class Config:
        populate_by_name = True


class QuizResponse(BaseModel):
    topic: str
    level: str
    questions: List[QuizQuestion]


@router.post("", response_model=TopicResponse, status_code=status.HTTP_201_CREATED)
def create_topic(
    request: CreateTopicRequest,
    current_user: TokenUser = Depends(get_current_user),
    store: TopicStore = Depends(get_topic_store),
    generator: ContentGenerator = Depends(get_content_generator),
):
    """
    Create a topic with AI-generated learning points.

    The slug is derived from the title (``java-basics``, then
    ``java-basics-1`` ...) unless one is given explicitly, in which case it
    must be free. AI failures fall back to placeholder content.

    Protected endpoint - requires JWT authentication.
    """
    if not request.title or not request.title.strip() or not request.level:
        raise errors.ValidationError("Title and level are required to create a topic.")
    level = parse_level(request.level)

    logger.info("User %s creating topic %r", current_user.id, request.title)
    content = generator.generate_topic_content(request.title.strip(), request.description, level.value)

    record = store.create_topic(
        user_id=current_user.id,
        title=request.title,
        level=level,
        description=request.description,
        content=content,
        slug=request.slug,
    )
    logger.info("Topic %s created by user %s", record.slug, current_user.id)
    return TopicResponse.from_record(record)


@router.get("", response_model=List[TopicResponse])
def list_topics(store: TopicStore = Depends(get_topic_store)):
    """List all topics, newest first. Public."""
    return [TopicResponse.from_record(record) for record in store.list_topics()]


@router.get("/{slug}", response_model=TopicResponse)
def get_topic(slug: str, store: TopicStore = Depends(get_topic_store)):
    """Get a topic with its stored content. Public."""
    return TopicResponse.from_record(store.get_topic_by_slug(slug))


@router.put("/{slug}", response_model=TopicResponse)
def update_topic(
    slug: str,
    request: UpdateTopicRequest,
    current_user: TokenUser = Depends(get_current_user),
    store: TopicStore = Depends(get_topic_store),
):
    """
    Update title, description or level of a topic owned by the caller.

    A title change also changes the slug.
    """
    patch = TopicPatch(title=request.title, description=request.description, level=request.level)
    if patch.is_empty():
        raise errors.ValidationError("Provide at least one of title, description or level.")
    if patch.level is not None:
        parse_level(patch.level)

    record = store.update_topic(slug, current_user.id, patch)
    logger.info("Topic %s updated by user %s (now %s)", slug, current_user.id, record.slug)
    return TopicResponse.from_record(record)


@router.delete("/{slug}", response_model=DeleteTopicResponse)
def delete_topic(
    slug: str,
    current_user: TokenUser = Depends(get_current_user),
    store: TopicStore = Depends(get_topic_store),
):
    """
    Delete a topic owned by the caller.

    The response names the client-local progress key to discard.
    """
    record = store.delete_topic(slug, current_user.id)
    logger.info("Topic %s deleted by user %s", record.slug, current_user.id)
    return DeleteTopicResponse(
        msg="Topic deleted successfully.",
        slug=record.slug,
        progressKey=progress_key(record.slug),
    )


@router.post("/{slug}/quiz", response_model=QuizResponse)
def generate_quiz(
    slug: str,
    request: QuizRequest,
    current_user: TokenUser = Depends(get_current_user),
    store: TopicStore = Depends(get_topic_store),
    generator: ContentGenerator = Depends(get_content_generator),
):
    """
    Generate a quiz for one level of a topic. Quizzes are never stored.

    Defaults to the topic's own level.
    """
    record = store.get_topic_by_slug(slug)
    level = parse_level(request.level or record.level).value

    questions = generator.generate_quiz(
        record.title,
        level,
        request.num_questions,
        points=record.content.get(level),
    )
    return QuizResponse(topic=record.title, level=level, questions=questions)
