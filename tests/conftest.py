import pytest
from models.question import Question


def build_question(number: int, correct: int = 0) -> Question:
    return Question(
        question_text=f"Practice question number {number}?",
        options=(f"{number}-A", f"{number}-B", f"{number}-C", f"{number}-D"),
        correct_answer_index=correct,
        explanation=f"Option {correct} is right for question {number}.",
    )


@pytest.fixture
def make_questions():
    """Factory for question lists; question i has its correct answer at i % 4."""

    def _make(count: int):
        return [build_question(i, correct=i % 4) for i in range(count)]

    return _make
