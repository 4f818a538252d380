from abc import ABC, abstractmethod
from typing import List

from models.question import Question
from models.subject import Grade, Subject


class QuestionSource(ABC):
    """Supplies the ordered question list for a subject and grade."""

    @abstractmethod
    def fetch(self, subject: Subject, grade: Grade) -> List[Question]:
        """
        Fetch questions for one quiz session.

        Raises:
            QuestionSourceUnavailable: the source failed or its data was unusable
        """


def create_question_source(config) -> QuestionSource:
    """Build the question source named by ``config.QUESTION_SOURCE``."""
    kind = (config.QUESTION_SOURCE or "bank").strip().lower()

    if kind == "bank":
        from services.question_bank import QuestionBank

        return QuestionBank(
            data_dir=config.QUESTION_BANK_DIR,
            questions_per_session=config.QUESTIONS_PER_SESSION,
        )

    if kind == "openai":
        from services.question_generator import GeneratedQuestionSource

        return GeneratedQuestionSource(
            api_key=config.OPENAI_API_KEY,
            model=config.OPENAI_MODEL,
            questions_per_session=config.QUESTIONS_PER_SESSION,
        )

    raise ValueError(f"Unknown question source: {config.QUESTION_SOURCE}")
