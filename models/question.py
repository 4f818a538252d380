from pydantic import BaseModel, ConfigDict, Field, field_validator

OPTION_COUNT = 4


class Question(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    question_text: str = Field(
        ..., alias="questionText", min_length=1, description="The question prompt"
    )
    options: tuple[str, ...] = Field(
        ..., description="Exactly four answer options, in display order"
    )
    correct_answer_index: int = Field(
        ...,
        alias="correctAnswerIndex",
        ge=0,
        lt=OPTION_COUNT,
        description="Position of the correct option (0-3)",
    )
    explanation: str = Field("", description="Shown to the learner once answered")

    @field_validator("options")
    @classmethod
    def validate_options(cls, v):
        if len(v) != OPTION_COUNT:
            raise ValueError(f"options must contain exactly {OPTION_COUNT} entries")
        return v

    def to_wire(self) -> dict:
        return {
            "questionText": self.question_text,
            "options": list(self.options),
            "correctAnswerIndex": self.correct_answer_index,
            "explanation": self.explanation,
        }
