from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator
from models.question import Question


class PassMode(str, Enum):
    PRIMARY = "primary"
    RETRY = "retry"


class QuizProgress(BaseModel):
    """Payload carried by the playing and result states."""

    model_config = ConfigDict(frozen=True)

    active_questions: tuple[Question, ...] = Field(
        ..., min_length=1, description="Questions of the current pass, in order"
    )
    mode: PassMode = Field(PassMode.PRIMARY, description="Primary or retry pass")
    current_index: int = Field(0, ge=0, description="Cursor into active_questions")
    answers: tuple[Optional[int], ...] = Field(
        ..., description="Selected option per position, None while unanswered"
    )
    score: int = Field(0, ge=0, description="Points earned in this pass")
    wrong_indices: frozenset[int] = Field(
        default_factory=frozenset,
        description="Positions in active_questions answered incorrectly",
    )
    initial_score: Optional[int] = Field(
        None, description="Score captured at the end of the first primary pass"
    )
    original_count: int = Field(
        ..., ge=1, description="Length of the question list the session started with"
    )

    @model_validator(mode="after")
    def check_positions(self):
        count = len(self.active_questions)
        if self.current_index >= count:
            raise ValueError(
                f"current_index {self.current_index} out of range for {count} questions"
            )
        if len(self.answers) != count:
            raise ValueError("answers must have one slot per active question")
        if any(i < 0 or i >= count for i in self.wrong_indices):
            raise ValueError("wrong_indices must index active_questions")
        return self

    @classmethod
    def begin(
        cls,
        questions,
        mode: PassMode = PassMode.PRIMARY,
        initial_score: Optional[int] = None,
        original_count: Optional[int] = None,
    ) -> "QuizProgress":
        questions = tuple(questions)
        return cls(
            active_questions=questions,
            mode=mode,
            answers=(None,) * len(questions),
            initial_score=initial_score,
            original_count=original_count or len(questions),
        )

    @property
    def current_question(self) -> Question:
        return self.active_questions[self.current_index]

    @property
    def current_answer(self) -> Optional[int]:
        return self.answers[self.current_index]

    @property
    def is_answered(self) -> bool:
        return self.current_answer is not None

    @property
    def is_last(self) -> bool:
        return self.current_index == len(self.active_questions) - 1

    @property
    def total_questions(self) -> int:
        return len(self.active_questions)

    def correct_count(self) -> int:
        return sum(
            1
            for question, answer in zip(self.active_questions, self.answers)
            if answer is not None and answer == question.correct_answer_index
        )

    def incorrect_count(self) -> int:
        return sum(
            1
            for question, answer in zip(self.active_questions, self.answers)
            if answer is not None and answer != question.correct_answer_index
        )


class LoadingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Literal["loading"] = "loading"


class UnavailableState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Literal["unavailable"] = "unavailable"
    reason: str = Field(
        "No questions are available right now.",
        description="User-facing notice explaining why the quiz cannot start",
    )


class PlayingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Literal["playing"] = "playing"
    progress: QuizProgress


class ResultState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Literal["result"] = "result"
    progress: QuizProgress

    @property
    def has_mistakes(self) -> bool:
        return bool(self.progress.wrong_indices)


class FinishedState(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: Literal["finished"] = "finished"
    final_score: int = Field(..., ge=0, description="Score reported for the session")
    total_questions: int = Field(
        ..., ge=1, description="Length of the original question list"
    )


QuizState = Annotated[
    Union[LoadingState, UnavailableState, PlayingState, ResultState, FinishedState],
    Field(discriminator="phase"),
]
