"""Direct access to the content generator."""
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from eduai.core import errors
from eduai.core.security import TokenUser, get_current_user
from eduai.services.content_generator import ContentGenerator, get_content_generator
from eduai.services.topic_store import parse_level


router = APIRouter(prefix="/api/ai", tags=["AI"])


class TopicContentRequest(BaseModel):
    topicName: Optional[str] = None
    description: Optional[str] = None
    baseLevel: Optional[str] = None


class TopicContentResponse(BaseModel):
    beginner: List[str]
    intermediate: List[str]
    advanced: List[str]


class TutorRequest(BaseModel):
    topic: Optional[str] = None
    level: Optional[str] = None
    question: Optional[str] = None


class TutorResponse(BaseModel):
    answer: str


@router.post("/topic-content", response_model=TopicContentResponse)
def generate_topic_content(
    request: TopicContentRequest,
    generator: ContentGenerator = Depends(get_content_generator),
):
    """Generate learning points for a topic without storing anything."""
    if not request.topicName or not request.baseLevel:
        raise errors.ValidationError("Missing required parameters: topicName or baseLevel.")
    level = parse_level(request.baseLevel)

    content = generator.generate_topic_content(request.topicName, request.description, level.value)
    return TopicContentResponse(
        beginner=content["Beginner"],
        intermediate=content["Intermediate"],
        advanced=content["Advanced"],
    )


@router.post("/tutor", response_model=TutorResponse)
def ask_tutor(
    request: TutorRequest,
    current_user: TokenUser = Depends(get_current_user),
    generator: ContentGenerator = Depends(get_content_generator),
):
    """Ask the AI tutor a question about a topic at a level."""
    if not request.topic or not request.question or not request.question.strip():
        raise errors.ValidationError("Topic and question are required.")
    level = parse_level(request.level or "Beginner")

    answer = generator.answer_question(request.topic, level.value, request.question.strip())
    return TutorResponse(answer=answer)
