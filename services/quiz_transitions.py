"""
Quiz session state machine.

Every transition is a pure function from ``(state, action)`` to a new state.
States and payloads are frozen pydantic models, so a rejected action can never
leave a half-applied change behind. Rejections raise ``InvalidTransition``.
"""
from models.actions import (
    Advance,
    FinishQuiz,
    GoBack,
    RetryMistakes,
    SelectOption,
    SourceFailed,
    StartQuiz,
)
from models.session import (
    FinishedState,
    LoadingState,
    PassMode,
    PlayingState,
    QuizProgress,
    ResultState,
    UnavailableState,
)
from services.answer_evaluator import evaluate_answer
from services.exceptions import AlreadyAnswered, InvalidTransition


def initial_state() -> LoadingState:
    return LoadingState()


def transition(state, action):
    """Apply ``action`` to ``state`` and return the resulting state."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise InvalidTransition(
            getattr(action, "kind", type(action).__name__),
            state.phase,
            f"Unknown action: {action!r}",
        )
    return handler(state, action)


def start(state, action: StartQuiz):
    _require(state, action, LoadingState)
    if not action.questions:
        return UnavailableState()
    return PlayingState(progress=QuizProgress.begin(action.questions))


def source_failed(state, action: SourceFailed):
    _require(state, action, LoadingState)
    return UnavailableState(reason=action.reason)


def select_option(state, action: SelectOption):
    _require(state, action, PlayingState)
    progress = state.progress
    if progress.is_answered:
        raise AlreadyAnswered(
            action.kind,
            state.phase,
            f"Question {progress.current_index + 1} has already been answered",
        )

    evaluation = evaluate_answer(progress.current_question, action.index)
    answers = list(progress.answers)
    answers[progress.current_index] = action.index
    return PlayingState(
        progress=progress.model_copy(
            update={
                "answers": tuple(answers),
                "score": progress.score + evaluation.points_awarded,
            }
        )
    )


def advance(state, action: Advance):
    _require(state, action, PlayingState)
    progress = state.progress
    if not progress.is_answered:
        raise InvalidTransition(
            action.kind,
            state.phase,
            "Answer the current question before moving on",
        )

    updates = {}
    if progress.current_answer != progress.current_question.correct_answer_index:
        updates["wrong_indices"] = progress.wrong_indices | {progress.current_index}

    if not progress.is_last:
        updates["current_index"] = progress.current_index + 1
        return PlayingState(progress=progress.model_copy(update=updates))

    if progress.mode == PassMode.PRIMARY and progress.initial_score is None:
        updates["initial_score"] = progress.score
    return ResultState(progress=progress.model_copy(update=updates))


def go_back(state, action: GoBack):
    _require(state, action, PlayingState)
    progress = state.progress
    if progress.current_index == 0:
        raise InvalidTransition(
            action.kind, state.phase, "Already at the first question"
        )
    return PlayingState(
        progress=progress.model_copy(
            update={"current_index": progress.current_index - 1}
        )
    )


def retry(state, action: RetryMistakes):
    _require(state, action, ResultState)
    progress = state.progress
    if not progress.wrong_indices:
        raise InvalidTransition(
            action.kind, state.phase, "There are no mistakes to retry"
        )

    missed = [progress.active_questions[i] for i in sorted(progress.wrong_indices)]
    return PlayingState(
        progress=QuizProgress.begin(
            missed,
            mode=PassMode.RETRY,
            initial_score=progress.initial_score,
            original_count=progress.original_count,
        )
    )


def finish(state, action: FinishQuiz):
    _require(state, action, ResultState)
    return FinishedState(
        final_score=final_score(state),
        total_questions=state.progress.original_count,
    )


def final_score(state: ResultState) -> int:
    """Score to report for a session sitting in the result state."""
    progress = state.progress
    if progress.initial_score is not None:
        return progress.initial_score
    return progress.score


def _require(state, action, expected) -> None:
    if not isinstance(state, expected):
        raise InvalidTransition(
            action.kind,
            state.phase,
            f"Cannot {action.kind.replace('_', ' ')} while {state.phase}",
        )


_HANDLERS = {
    StartQuiz: start,
    SourceFailed: source_failed,
    SelectOption: select_option,
    Advance: advance,
    GoBack: go_back,
    RetryMistakes: retry,
    FinishQuiz: finish,
}
