from datetime import datetime, timezone
from threading import Lock
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from models.subject import Grade, Subject


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActiveQuiz(BaseModel):
    """A learner's in-progress quiz and the collaborators chosen for it."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: str = Field(..., min_length=1, description="Unique user identifier")
    subject: Subject
    grade: Grade
    controller: Any = Field(..., description="SessionController driving the quiz")
    profile_store: Any = Field(
        ..., description="ProfileStore selected when the quiz was started"
    )
    started_at: datetime = Field(default_factory=_utcnow)
    last_activity: datetime = Field(default_factory=_utcnow)

    # Serialises actions on this quiz across request threads.
    _lock: Lock = PrivateAttr(default_factory=Lock)

    @property
    def lock(self) -> Lock:
        return self._lock

    def update_activity(self) -> None:
        self.last_activity = _utcnow()
