"""OpenAI-backed generation of topic content, quizzes and tutor answers.

Every public method returns something usable: when the AI call fails, times
out or replies with the wrong shape, a deterministic placeholder is returned
instead and the failure is only logged.
"""
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import Request
from openai import OpenAI
from pydantic import BaseModel, Field, field_validator

from eduai.core import errors
from eduai.core.config import Settings
from eduai.services.topic_store import LEVELS

logger = logging.getLogger(__name__)

MIN_QUIZ_QUESTIONS = 1
MAX_QUIZ_QUESTIONS = 10
OPTIONS_PER_QUESTION = 4


class TopicContentPayload(BaseModel):
    """Expected JSON reply for topic content."""
    beginner: List[str]
    intermediate: List[str]
    advanced: List[str]


class QuizQuestion(BaseModel):
    question: str
    options: List[str] = Field(min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correctAnswer: str

    @field_validator("correctAnswer")
    @classmethod
    def answer_is_an_option(cls, value, info):
        options = info.data.get("options") or []
        if value not in options:
            raise ValueError("correctAnswer must be one of the options")
        return value


class QuizPayload(BaseModel):
    questions: List[QuizQuestion]


class TutorPayload(BaseModel):
    answer: str


def fallback_topic_content(topic_name: str, description: Optional[str] = None) -> Dict[str, List[str]]:
    """Single placeholder point per level, used when generation fails."""
    if description:
        beginner = f"Introduction to {topic_name} (Beginner): {description}"
    else:
        beginner = f"Introduction to {topic_name} (Beginner)"
    return {
        "Beginner": [beginner],
        "Intermediate": [f"Intermediate concepts for {topic_name}"],
        "Advanced": [f"Advanced topics in {topic_name}"],
    }


def fallback_quiz(
    topic: str,
    level: str,
    num_questions: int,
    points: Optional[List[str]] = None,
) -> List[QuizQuestion]:
    """
    Deterministic placeholder quiz.

    With learning points available, question ``i`` asks which option is a
    point of the level, the correct option being point ``i`` (cycling).
    """
    questions = []
    points = [point for point in (points or []) if point]
    for index in range(num_questions):
        if points:
            correct = points[index % len(points)]
            distractors = [
                f"An unrelated idea outside {topic}",
                f"A concept from a different subject than {topic}",
                f"None of the {level} points of {topic}",
            ]
            options = [correct] + distractors
            # rotate so the correct option does not always come first
            shift = index % OPTIONS_PER_QUESTION
            options = options[shift:] + options[:shift]
            questions.append(QuizQuestion(
                question=f"Which of the following is a {level} learning point of {topic}?",
                options=options,
                correctAnswer=correct,
            ))
        else:
            options = [f"Option {letter}" for letter in "ABCD"]
            questions.append(QuizQuestion(
                question=f"Question {index + 1} about {topic} ({level})",
                options=options,
                correctAnswer=options[0],
            ))
    return questions


def fallback_answer(topic: str, level: str) -> str:
    return (
        f"Sorry, the tutor is not available right now. "
        f"Please review the {level} learning points of {topic} and try again later."
    )


class ContentGenerator:
    """Service for generating learning material through an OpenAI-compatible API."""

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        """Keep settings; the OpenAI client is created on first use."""
        self.settings = settings
        self.model = settings.OPENAI_MODEL
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = OpenAI(
                api_key=self.settings.OPENAI_API_KEY,
                base_url=self.settings.AI_SERVICE_BASE_URL or None,
                timeout=self.settings.AI_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    def generate_topic_content(
        self,
        topic_name: str,
        description: Optional[str],
        base_level: str,
    ) -> Dict[str, List[str]]:
        """
        Generate learning points for all three levels of a topic.

        Args:
            topic_name: Name of the topic (e.g. "Java Programming")
            description: Optional description or specific interests
            base_level: Level the topic was primarily requested at

        Returns:
            Mapping of "Beginner" / "Intermediate" / "Advanced" to ordered
            lists of learning points.
        """
        system_prompt = (
            "You are an expert curriculum designer. "
            "Return ONLY valid JSON in the specified format."
        )
        user_prompt = self._build_topic_prompt(topic_name, description, base_level)

        try:
            result = self._complete_json(system_prompt, user_prompt)
            payload = TopicContentPayload.model_validate(result)
        except Exception as e:
            logger.warning("Topic content generation failed for %r, using fallback: %s", topic_name, e)
            return fallback_topic_content(topic_name, description)

        return {
            "Beginner": payload.beginner,
            "Intermediate": payload.intermediate,
            "Advanced": payload.advanced,
        }

    def generate_quiz(
        self,
        topic: str,
        level: str,
        num_questions: int = 5,
        points: Optional[List[str]] = None,
    ) -> List[QuizQuestion]:
        """
        Generate a multiple-choice quiz for one level of a topic.

        Raises:
            ValidationError: num_questions is outside 1-10
        """
        if not MIN_QUIZ_QUESTIONS <= num_questions <= MAX_QUIZ_QUESTIONS:
            raise errors.ValidationError(
                f"Number of questions must be between {MIN_QUIZ_QUESTIONS} and {MAX_QUIZ_QUESTIONS}."
            )

        system_prompt = f"""You are an expert quiz creator for educational content.
Guidelines:
- Questions must be clear, unambiguous and suited to the {level} level
- Provide exactly {OPTIONS_PER_QUESTION} options per question with exactly one correct answer
- correctAnswer must repeat the text of the correct option
- Return ONLY valid JSON in the specified format

Output format:
{{
  "questions": [
    {{
      "question": "The question text",
      "options": ["Option A text", "Option B text", "Option C text", "Option D text"],
      "correctAnswer": "Option B text"
    }}
  ]
}}"""
        user_prompt = f'Generate exactly {num_questions} quiz questions about "{topic}" at the {level} level.'
        if points:
            listed = "\n".join(f"- {point}" for point in points)
            user_prompt += f"\n\nBase the questions on these learning points:\n{listed}"

        try:
            result = self._complete_json(system_prompt, user_prompt)
            payload = QuizPayload.model_validate(result)
            if len(payload.questions) < num_questions:
                raise ValueError(
                    f"expected {num_questions} questions, got {len(payload.questions)}"
                )
        except Exception as e:
            logger.warning("Quiz generation failed for %r (%s), using fallback: %s", topic, level, e)
            return fallback_quiz(topic, level, num_questions, points)

        return payload.questions[:num_questions]

    def answer_question(self, topic: str, level: str, question: str) -> str:
        """Answer a learner's question about a topic at the given level."""
        system_prompt = (
            f"You are a friendly tutor helping a {level} student learn {topic}. "
            'Answer concisely. Return JSON of the form {"answer": "..."}.'
        )

        try:
            result = self._complete_json(system_prompt, question)
            return TutorPayload.model_validate(result).answer
        except Exception as e:
            logger.warning("Tutor answer failed for %r, using fallback: %s", topic, e)
            return fallback_answer(topic, level)

    def _complete_json(self, system_prompt: str, user_prompt: str) -> Any:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            temperature=0.7,
            response_format={"type": "json_object"}
        )
        content = response.choices[0].message.content
        return json.loads(content)

    def _build_topic_prompt(self, topic_name: str, description: Optional[str], base_level: str) -> str:
        prompt = (
            f'Generate a structured list of key learning points or sub-topics for the '
            f'educational topic "{topic_name}".\n'
        )
        if description:
            prompt += f'The user provided this description: "{description}"\n'
        prompt += f"""
The user requested this topic primarily at the "{base_level}" level, but provide learning points for all three levels: {", ".join(LEVELS)}.

For each level, provide a concise list of 5-10 essential learning points or tasks a student should cover.

Output format:
{{
  "beginner": ["..."],
  "intermediate": ["..."],
  "advanced": ["..."]
}}"""
        return prompt


def get_content_generator(request: Request) -> ContentGenerator:
    return request.app.state.content_generator
