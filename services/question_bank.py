import json
import logging
import os
import random
from typing import Any, List, Optional

from pydantic import ValidationError

from models.question import Question
from models.subject import Grade, Subject, bank_key
from services.exceptions import QuestionSourceUnavailable
from services.question_source import QuestionSource

logger = logging.getLogger(__name__)

MIN_QUESTION_TEXT_LENGTH = 10


class QuestionBank(QuestionSource):
    """
    Question source backed by JSON files on disk.

    Each subject/grade pair has one file named after ``bank_key``, e.g.
    ``math_primary_3.json``, holding a list of questions in the wire format.
    Every fetch draws a fresh random sample of ``questions_per_session``.
    """

    def __init__(
        self,
        data_dir: str,
        questions_per_session: int = 10,
        rng: Optional[random.Random] = None,
    ):
        if questions_per_session < 1:
            raise ValueError("questions_per_session must be at least 1")
        self.data_dir = data_dir
        self.questions_per_session = questions_per_session
        self._rng = rng or random.Random()

    def fetch(self, subject: Subject, grade: Grade) -> List[Question]:
        questions = self.load_all(subject, grade)
        count = min(self.questions_per_session, len(questions))
        return self._rng.sample(questions, count)

    def load_all(self, subject: Subject, grade: Grade) -> List[Question]:
        """
        Load every valid question in a subject/grade bank.

        Invalid entries are skipped and logged.

        Raises:
            QuestionSourceUnavailable: the bank file is missing or unreadable
        """
        path = self.bank_path(subject, grade)
        raw = self._read(path)

        questions = []
        for position, entry in enumerate(raw, 1):
            errors = validate_question_entry(entry)
            if errors:
                for error in errors:
                    logger.warning("%s Q%d: %s", os.path.basename(path), position, error)
                continue
            questions.append(Question.model_validate(entry))
        return questions

    def bank_path(self, subject: Subject, grade: Grade) -> str:
        return os.path.join(self.data_dir, f"{bank_key(subject, grade)}.json")

    def _read(self, path: str) -> List[Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise QuestionSourceUnavailable(f"Question bank not found: {path}")
        except (OSError, json.JSONDecodeError) as e:
            raise QuestionSourceUnavailable(f"Could not read question bank {path}: {e}")

        if not isinstance(data, list):
            raise QuestionSourceUnavailable(
                f"Question bank {path} must contain a JSON list"
            )
        return data


def validate_question_entry(entry: Any) -> List[str]:
    """Return the problems found in one raw question entry (empty when valid)."""
    try:
        question = Question.model_validate(entry)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in err['loc']) or 'entry'}: {err['msg']}"
            for err in e.errors()
        ]

    errors = []
    if len(set(question.options)) != len(question.options):
        errors.append("Duplicate options found")
    if len(question.question_text.strip()) < MIN_QUESTION_TEXT_LENGTH:
        errors.append("Question text too short")
    return errors
