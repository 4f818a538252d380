import json
import logging
import os
from typing import Any, Dict, List, Optional

from openai import OpenAI, APIError, RateLimitError, APIConnectionError
from pydantic import ValidationError

from config import Config
from models.question import Question
from models.subject import Grade, Subject
from services.exceptions import QuestionSourceUnavailable
from services.question_source import QuestionSource

logger = logging.getLogger(__name__)

SUBJECT_FOCUS: Dict[Subject, Dict[Grade, str]] = {
    Subject.ENGLISH: {
        Grade.PRIMARY_3: (
            "Grammar (tenses, prepositions, connectors) and vocabulary in context, "
            "including sentence synthesis."
        ),
        Grade.PRIMARY_4: (
            "Phrasal verbs, subject-verb agreement, vocabulary in context and "
            "synthesis rules."
        ),
    },
    Subject.MATH: {
        Grade.PRIMARY_3: (
            "Two-step word problems with the four operations, money, length and mass."
        ),
        Grade.PRIMARY_4: (
            "Word problems on factors and multiples, fractions, unknown angles and "
            "logical reasoning."
        ),
    },
    Subject.SCIENCE: {
        Grade.PRIMARY_3: (
            "Applying concepts: classifying materials, plants and fungi, and magnet "
            "experiments."
        ),
        Grade.PRIMARY_4: (
            "Process skills on experimental setups about light, heat, matter and "
            "cycles: inferring what happens when a variable changes."
        ),
    },
    Subject.CHINESE: {
        Grade.PRIMARY_3: (
            "Similar-looking characters, choosing vocabulary in context and Hanyu "
            "Pinyin for tricky characters."
        ),
        Grade.PRIMARY_4: (
            "Similar-looking characters, choosing vocabulary in context and Hanyu "
            "Pinyin for tricky characters, at Higher Chinese standard."
        ),
    },
}


class GeneratedQuestionSource(QuestionSource):
    """Question source that asks an OpenAI chat model for a fresh question set."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        questions_per_session: int = 10,
    ):
        self.api_key = api_key or Config.OPENAI_API_KEY

        if not self.api_key:
            logger.error("OpenAI API key is missing")
            raise ValueError("OpenAI API key is required")

        self.api_key = self.api_key.strip().strip('"').strip("'")

        if not self.api_key.startswith("sk-"):
            logger.error("Invalid OpenAI API key format: %s...", self.api_key[:5])
            raise ValueError("Invalid OpenAI API key format (must start with 'sk-')")

        self.model = model or Config.OPENAI_MODEL
        self.questions_per_session = questions_per_session
        self.client = OpenAI(api_key=self.api_key)
        self.prompts_dir = os.path.join(
            os.path.dirname(os.path.dirname(__file__)), "prompts"
        )
        self.question_prompt = self._load_prompt("question_prompt.txt")

    def _load_prompt(self, filename: str) -> str:
        prompt_path = os.path.join(self.prompts_dir, filename)
        try:
            with open(prompt_path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            raise FileNotFoundError(f"Prompt template not found: {prompt_path}")

    def _call_llm(
        self, prompt: str, temperature: float = 0.7, max_tokens: int = 4000
    ) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": (
                            "You are a primary school teacher setting a practice "
                            "paper. Always respond with valid JSON."
                        ),
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )

            return response.choices[0].message.content or ""

        except RateLimitError as e:
            raise QuestionSourceUnavailable(f"OpenAI rate limit exceeded: {str(e)}")
        except APIConnectionError as e:
            raise QuestionSourceUnavailable(f"OpenAI API connection error: {str(e)}")
        except APIError as e:
            raise QuestionSourceUnavailable(f"OpenAI API error: {str(e)}")

    def build_prompt(self, subject: Subject, grade: Grade) -> str:
        return self.question_prompt.format(
            count=self.questions_per_session,
            subject=subject.value,
            grade=grade.value,
            focus=SUBJECT_FOCUS[subject][grade],
        )

    def fetch(self, subject: Subject, grade: Grade) -> List[Question]:
        response_text = self._call_llm(self.build_prompt(subject, grade))
        questions = parse_questions(response_text)
        logger.info(
            "Generated %d questions for %s/%s", len(questions), subject.value, grade.value
        )
        return questions[: self.questions_per_session]


def parse_questions(response_text: str) -> List[Question]:
    """
    Parse a model response into questions.

    Accepts either ``{"questions": [...]}`` or a bare list, with or without
    markdown code fences around it.

    Raises:
        QuestionSourceUnavailable: the response is not a valid question list
    """
    text = response_text.replace("```json", "").replace("```", "").strip()
    if not text:
        raise QuestionSourceUnavailable("Empty response from question generator")

    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise QuestionSourceUnavailable(
            f"Failed to parse generated questions as JSON: {str(e)}"
        )

    if isinstance(data, dict):
        data = data.get("questions")

    if not isinstance(data, list):
        raise QuestionSourceUnavailable("Generated questions must be a JSON list")

    try:
        return [Question.model_validate(entry) for entry in data]
    except ValidationError as e:
        raise QuestionSourceUnavailable(f"Generated question is invalid: {str(e)}")
