import logging
from datetime import date
from typing import Any, Callable, Dict, Optional

from models.active_quiz import ActiveQuiz
from models.session import FinishedState
from models.subject import Grade, Subject
from services.exceptions import PersistenceFailure
from services.profile_store import ProfileStore
from services.question_source import QuestionSource
from services.session_controller import SessionController
from services.session_manager import SessionManager
from services.streak_calculator import calculate_streak, longest_streak, today_string

logger = logging.getLogger(__name__)


class QuizEngine:

    def __init__(
        self,
        session_manager: SessionManager,
        question_source: QuestionSource,
        daily_game_limit: int = 0,
        today: Optional[Callable[[], date]] = None,
    ):
        self.session_manager = session_manager
        self.question_source = question_source
        self.daily_game_limit = daily_game_limit
        self._today = today or date.today

    def start_quiz(
        self,
        user_id: str,
        subject: Subject,
        grade: Grade,
        profile_store: ProfileStore,
    ) -> Dict[str, Any]:
        """
        Start a quiz for a user, discarding any quiz already in progress.

        Args:
            user_id: Unique identifier for the user
            subject: Subject to quiz on
            grade: Learner's grade, selecting the question set
            profile_store: Store that receives the result when the quiz finishes

        Returns:
            Result dictionary; ``"started"`` with the first question view, or
            ``"unavailable"`` / ``"daily_limit_reached"`` when no quiz was started
        """
        self.session_manager.delete_session(user_id)
        expired = self.session_manager.cleanup_expired_sessions()
        if expired:
            logger.info("Discarded %d idle quiz(zes)", expired)

        if self._limit_reached(user_id, subject, profile_store):
            return {
                "result": "daily_limit_reached",
                "message": (
                    f"You've played {subject.value} {self.daily_game_limit} "
                    "time(s) today. Come back tomorrow!"
                ),
            }

        controller = SessionController()
        result = controller.load(self.question_source, subject, grade)
        if result["result"] != "started":
            return result

        self.session_manager.create_session(
            ActiveQuiz(
                user_id=user_id,
                subject=subject,
                grade=grade,
                controller=controller,
                profile_store=profile_store,
            )
        )
        logger.info(
            "Started %s/%s quiz for %s with %d questions (%d active)",
            subject.value,
            grade.value,
            user_id,
            result["total_questions"],
            self.session_manager.active_count(),
        )
        return {**result, "view": controller.view()}

    def get_current_view(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the current quiz view for a user.

        Returns:
            View dictionary, or None if the user has no active quiz
        """
        quiz = self.session_manager.get_session(user_id)
        if not quiz:
            return None
        with quiz.lock:
            view = quiz.controller.view()
        return {
            "subject": quiz.subject.value,
            "grade": quiz.grade.value,
            **view,
        }

    def select_option(self, user_id: str, index: int) -> Dict[str, Any]:
        quiz = self._require(user_id)
        with quiz.lock:
            return quiz.controller.select_option(index)

    def advance(self, user_id: str) -> Dict[str, Any]:
        quiz = self._require(user_id)
        with quiz.lock:
            return quiz.controller.advance()

    def go_back(self, user_id: str) -> Dict[str, Any]:
        quiz = self._require(user_id)
        with quiz.lock:
            return quiz.controller.go_back()

    def retry_mistakes(self, user_id: str) -> Dict[str, Any]:
        quiz = self._require(user_id)
        with quiz.lock:
            return quiz.controller.retry()

    def finish_quiz(self, user_id: str) -> Dict[str, Any]:
        """
        Finish a user's quiz and save the primary-pass score.

        If saving fails the quiz stays on its result screen and can be
        finished again. A second finish racing the first one waits for it
        and is then rejected, so the score is saved once.
        """
        quiz = self._require(user_id)
        today = self._today()
        date_str = today_string(today)

        def report(finished: FinishedState) -> None:
            quiz.profile_store.persist(
                user_id,
                quiz.subject,
                quiz.grade,
                finished.final_score,
                finished.total_questions,
                date_str,
            )

        with quiz.lock:
            result = quiz.controller.finish(reporter=report)
        if result["result"] != "finished":
            return result

        self.session_manager.delete_session(user_id)
        logger.info(
            "Saved %s quiz for %s: %d points",
            quiz.subject.value,
            user_id,
            result["final_score"],
        )

        try:
            profile = quiz.profile_store.get_profile(user_id)
        except PersistenceFailure as e:
            logger.warning("Could not reload profile for %s: %s", user_id, e)
            return result

        if profile is not None:
            result["total_points"] = profile.total_points
            result["streak"] = calculate_streak(profile.completed_dates, today)
        return result

    def abandon_quiz(self, user_id: str) -> bool:
        """Discard a user's quiz without saving anything."""
        return self.session_manager.delete_session(user_id)

    def get_progress(self, user_id: str, profile_store: ProfileStore) -> Optional[Dict[str, Any]]:
        """
        Profile summary with streaks and recent results.

        Returns:
            Summary dictionary, or None if the user has no profile
        """
        profile = profile_store.get_profile(user_id)
        if profile is None:
            return None

        today = self._today()
        return {
            "profile": profile,
            "streak": calculate_streak(profile.completed_dates, today),
            "longest_streak": longest_streak(profile.completed_dates),
            "days_active": len(set(profile.completed_dates)),
            "recent_results": profile_store.recent_results(user_id),
        }

    def _limit_reached(
        self, user_id: str, subject: Subject, profile_store: ProfileStore
    ) -> bool:
        if self.daily_game_limit <= 0:
            return False
        try:
            played = profile_store.games_played_today(
                user_id, subject, today_string(self._today())
            )
        except PersistenceFailure as e:
            logger.warning("Could not check daily limit for %s: %s", user_id, e)
            return False
        return played >= self.daily_game_limit

    def _require(self, user_id: str) -> ActiveQuiz:
        quiz = self.session_manager.get_session(user_id)
        if not quiz:
            raise ValueError(f"No active quiz for user {user_id}")
        return quiz
