from pydantic import BaseModel, ConfigDict, Field


class AnswerEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    correct: bool = Field(..., description="Whether the selected option was correct")
    points_awarded: int = Field(..., ge=0, description="Points earned for the answer")
