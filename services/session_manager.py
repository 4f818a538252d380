from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Dict, Optional
from models.active_quiz import ActiveQuiz


class SessionManager:
    def __init__(self, session_timeout_seconds: float = 3600):
        self._sessions: Dict[str, ActiveQuiz] = {}
        self._lock = Lock()
        self._timeout = timedelta(seconds=session_timeout_seconds)

    def create_session(self, quiz: ActiveQuiz) -> ActiveQuiz:
        """
        Register a quiz for its user, replacing any quiz already in progress.

        Args:
            quiz: The quiz to register

        Returns:
            The registered ActiveQuiz
        """
        with self._lock:
            self._sessions[quiz.user_id] = quiz
            return quiz

    def get_session(self, user_id: str) -> Optional[ActiveQuiz]:
        """
        Retrieve a user's quiz if it exists and is not expired.

        Args:
            user_id: Unique identifier for the user

        Returns:
            ActiveQuiz if found and valid, None otherwise
        """
        with self._lock:
            quiz = self._sessions.get(user_id)
            if quiz is None:
                return None

            if self._is_expired(quiz):
                del self._sessions[user_id]
                return None

            quiz.update_activity()
            return quiz

    def delete_session(self, user_id: str) -> bool:
        """
        Discard a user's quiz.

        Returns:
            True if a quiz was deleted, False if there was none
        """
        with self._lock:
            if user_id in self._sessions:
                del self._sessions[user_id]
                return True
            return False

    def cleanup_expired_sessions(self) -> int:
        """
        Remove all expired quizzes.

        Returns:
            Number of quizzes that were cleaned up
        """
        with self._lock:
            expired_users = [
                user_id
                for user_id, quiz in self._sessions.items()
                if self._is_expired(quiz)
            ]
            for user_id in expired_users:
                del self._sessions[user_id]
            return len(expired_users)

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _is_expired(self, quiz: ActiveQuiz) -> bool:
        return datetime.now(timezone.utc) - quiz.last_activity > self._timeout
