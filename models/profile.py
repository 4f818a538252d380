from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field
from models.subject import Grade, Subject


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserProfile(BaseModel):
    user_id: str = Field(..., min_length=1, description="Unique user identifier")
    name: str = Field(..., min_length=1, description="Display name")
    grade: Grade = Field(..., description="Learner cohort")
    avatar: Optional[str] = Field(None, description="Avatar image URL")
    total_points: int = Field(0, ge=0, description="Accumulated primary-pass points")
    games_played: int = Field(0, ge=0, description="Number of finished quizzes")
    completed_dates: list[str] = Field(
        default_factory=list,
        description="ISO dates (YYYY-MM-DD) with at least one finished quiz",
    )
    created_at: datetime = Field(default_factory=_utcnow)
    last_active: datetime = Field(default_factory=_utcnow)

    def update_activity(self) -> None:
        self.last_active = _utcnow()

    def append_completed_date(self, date_str: str) -> bool:
        """Add a completion date; returns False when it was already recorded."""
        if date_str in self.completed_dates:
            return False
        self.completed_dates.append(date_str)
        self.update_activity()
        return True

    def accumulate_points(self, delta: int) -> None:
        self.total_points += delta
        self.update_activity()


class GameResult(BaseModel):
    user_id: str = Field(..., min_length=1)
    subject: Subject
    grade: Grade
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=1)
    played_on: str = Field(..., description="ISO date the quiz was finished on")
    played_at: datetime = Field(default_factory=_utcnow)


class LeaderboardEntry(BaseModel):
    rank: int = Field(..., ge=1)
    user_id: str
    name: str
    grade: Grade
    total_points: int = Field(..., ge=0)
    avatar: Optional[str] = None
