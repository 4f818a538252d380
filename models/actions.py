from typing import Annotated, Literal, Union
from pydantic import BaseModel, ConfigDict, Field
from models.question import Question


class StartQuiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["start"] = "start"
    questions: tuple[Question, ...] = ()


class SourceFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["source_failed"] = "source_failed"
    reason: str = "No questions are available right now."


class SelectOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["select_option"] = "select_option"
    index: int = Field(..., ge=0, description="Chosen option position")


class Advance(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["advance"] = "advance"


class GoBack(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["go_back"] = "go_back"


class RetryMistakes(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["retry"] = "retry"


class FinishQuiz(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["finish"] = "finish"


QuizAction = Annotated[
    Union[StartQuiz, SourceFailed, SelectOption, Advance, GoBack, RetryMistakes, FinishQuiz],
    Field(discriminator="kind"),
]
