import logging
from typing import Any, Callable, Dict, Optional

from models.actions import (
    Advance,
    FinishQuiz,
    GoBack,
    RetryMistakes,
    SelectOption,
    SourceFailed,
    StartQuiz,
)
from models.question import OPTION_COUNT
from models.session import FinishedState, PlayingState, ResultState
from models.subject import Grade, Subject
from services.answer_evaluator import evaluate_answer
from services.exceptions import (
    AlreadyAnswered,
    InvalidTransition,
    PersistenceFailure,
    QuestionSourceUnavailable,
)
from services.quiz_transitions import initial_state, transition

logger = logging.getLogger(__name__)

Reporter = Callable[[FinishedState], None]


class SessionController:
    """
    Drives one quiz session through its states.

    The controller keeps the current state and applies actions through the
    pure transition functions. Rejected actions never change the state; they
    come back as a result dictionary the caller can show to the learner.
    """

    def __init__(self, state=None):
        self._state = state if state is not None else initial_state()

    @property
    def state(self):
        return self._state

    @property
    def phase(self) -> str:
        return self._state.phase

    def load(self, question_source, subject: Subject, grade: Grade) -> Dict[str, Any]:
        """
        Fetch questions for a subject and grade and start the session.

        A failed fetch and an empty one both leave the session unavailable.
        """
        try:
            questions = question_source.fetch(subject, grade)
        except QuestionSourceUnavailable as e:
            logger.warning(
                "Question source failed for %s/%s: %s", subject.value, grade.value, e
            )
            return self._apply(SourceFailed()) or self._unavailable()
        return self.start(questions)

    def start(self, questions) -> Dict[str, Any]:
        rejected = self._apply(StartQuiz(questions=tuple(questions)))
        if rejected:
            return rejected
        if self.phase == "unavailable":
            return self._unavailable()
        return {
            "result": "started",
            "total_questions": self._state.progress.total_questions,
        }

    def select_option(self, index: int) -> Dict[str, Any]:
        option_count = OPTION_COUNT
        if isinstance(self._state, PlayingState):
            option_count = len(self._state.progress.current_question.options)
        if not 0 <= index < option_count:
            return {
                "result": "invalid_option",
                "message": f"Please select one of the {option_count} options.",
            }

        rejected = self._apply(SelectOption(index=index))
        if rejected:
            return rejected

        question = self._state.progress.current_question
        evaluation = evaluate_answer(question, index)
        return {
            "result": "answered",
            "evaluation": evaluation,
            "correct_answer_index": question.correct_answer_index,
            "explanation": question.explanation,
            "score": self._state.progress.score,
        }

    def advance(self) -> Dict[str, Any]:
        rejected = self._apply(Advance())
        if rejected:
            return rejected

        if isinstance(self._state, ResultState):
            return {"result": "quiz_completed", **self._summary(self._state)}
        return {
            "result": "next_question",
            "current_index": self._state.progress.current_index,
        }

    def go_back(self) -> Dict[str, Any]:
        rejected = self._apply(GoBack())
        if rejected:
            return rejected
        return {
            "result": "previous_question",
            "current_index": self._state.progress.current_index,
        }

    def retry(self) -> Dict[str, Any]:
        rejected = self._apply(RetryMistakes())
        if rejected:
            return rejected
        return {
            "result": "retry_started",
            "total_questions": self._state.progress.total_questions,
        }

    def finish(self, reporter: Optional[Reporter] = None) -> Dict[str, Any]:
        """
        Finish the session and report its final score.

        The session only becomes finished once ``reporter`` succeeds. On a
        PersistenceFailure it stays in the result state so finish can be
        invoked again.
        """
        try:
            finished = transition(self._state, FinishQuiz())
        except InvalidTransition as e:
            return self._rejected(e)

        if reporter is not None:
            try:
                reporter(finished)
            except PersistenceFailure as e:
                logger.warning("Could not save quiz result: %s", e)
                return {
                    "result": "persistence_failed",
                    "final_score": finished.final_score,
                    "total_questions": finished.total_questions,
                    "message": "Your score could not be saved. Please try again.",
                }

        self._state = finished
        return {
            "result": "finished",
            "final_score": finished.final_score,
            "total_questions": finished.total_questions,
        }

    def view(self) -> Dict[str, Any]:
        """Presentation-neutral snapshot of the current state."""
        state = self._state

        if isinstance(state, PlayingState):
            progress = state.progress
            question = progress.current_question
            data = {
                "phase": state.phase,
                "mode": progress.mode.value,
                "current_index": progress.current_index,
                "total_questions": progress.total_questions,
                "score": progress.score,
                "question": question.question_text,
                "options": list(question.options),
                "answered": progress.is_answered,
                "selected_option": progress.current_answer,
                "is_last": progress.is_last,
            }
            if progress.is_answered:
                data["correct_answer_index"] = question.correct_answer_index
                data["explanation"] = question.explanation
            return data

        if isinstance(state, ResultState):
            return {"phase": state.phase, **self._summary(state)}

        if isinstance(state, FinishedState):
            return {
                "phase": state.phase,
                "final_score": state.final_score,
                "total_questions": state.total_questions,
            }

        if state.phase == "unavailable":
            return {"phase": state.phase, "message": state.reason}

        return {"phase": state.phase}

    def _apply(self, action) -> Optional[Dict[str, Any]]:
        try:
            self._state = transition(self._state, action)
        except InvalidTransition as e:
            return self._rejected(e)
        return None

    def _rejected(self, error: InvalidTransition) -> Dict[str, Any]:
        logger.info(
            "Rejected %s while %s: %s", error.action, error.phase, error
        )
        return {
            "result": "already_answered"
            if isinstance(error, AlreadyAnswered)
            else "invalid_transition",
            "action": error.action,
            "phase": error.phase,
            "message": str(error),
        }

    def _unavailable(self) -> Dict[str, Any]:
        return {"result": "unavailable", "message": self._state.reason}

    def _summary(self, state: ResultState) -> Dict[str, Any]:
        progress = state.progress
        correct = progress.correct_count()
        return {
            "mode": progress.mode.value,
            "score": progress.score,
            "initial_score": progress.initial_score,
            "total_questions": progress.total_questions,
            "correct_count": correct,
            "incorrect_count": progress.incorrect_count(),
            "percentage": round(correct * 100 / progress.total_questions),
            "has_mistakes": state.has_mistakes,
        }
