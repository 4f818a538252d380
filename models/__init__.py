from models.subject import Subject, Grade
from models.question import Question
from models.evaluation import AnswerEvaluation
from models.session import (
    PassMode,
    QuizProgress,
    LoadingState,
    UnavailableState,
    PlayingState,
    ResultState,
    FinishedState,
    QuizState,
)
from models.profile import UserProfile, GameResult, LeaderboardEntry

__all__ = [
    "Subject",
    "Grade",
    "Question",
    "AnswerEvaluation",
    "PassMode",
    "QuizProgress",
    "LoadingState",
    "UnavailableState",
    "PlayingState",
    "ResultState",
    "FinishedState",
    "QuizState",
    "UserProfile",
    "GameResult",
    "LeaderboardEntry",
]
