from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict, List, Optional

from models.profile import GameResult, LeaderboardEntry, UserProfile
from models.subject import Grade, Subject

GUEST_NAME = "Guest Scholar"


class ProfileStore(ABC):
    """
    Persistence for learner profiles and finished quizzes.

    Implementations translate their storage errors into PersistenceFailure.
    """

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    def create_profile(
        self, user_id: str, name: str, grade: Grade, avatar: Optional[str] = None
    ) -> UserProfile:
        ...

    @abstractmethod
    def append_completed_date(self, user_id: str, date_str: str) -> None:
        """Record a day with a finished quiz; recording the same day twice is a no-op."""

    @abstractmethod
    def accumulate_points(self, user_id: str, delta: int) -> None:
        ...

    @abstractmethod
    def persist(
        self,
        user_id: str,
        subject: Subject,
        grade: Grade,
        final_score: int,
        total_questions: int,
        date_str: str,
    ) -> GameResult:
        """
        Record a finished quiz: store the result, add its points, count the
        game and mark ``date_str`` as an active day.
        """

    @abstractmethod
    def games_played_today(self, user_id: str, subject: Subject, date_str: str) -> int:
        ...

    @abstractmethod
    def recent_results(self, user_id: str, limit: int = 20) -> List[GameResult]:
        ...

    @abstractmethod
    def leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        ...

    def ensure_profile(self, user_id: str, grade: Grade = Grade.PRIMARY_3) -> UserProfile:
        profile = self.get_profile(user_id)
        if profile is None:
            profile = self.create_profile(user_id, GUEST_NAME, grade)
        return profile


_local_stores: Dict[str, ProfileStore] = {}
_database_stores: Dict[str, ProfileStore] = {}
_stores_lock = Lock()


def create_profile_store(guest: bool, config) -> ProfileStore:
    """
    Pick the store for a user session: guests keep their profile in a local
    file, signed-in users in the shared database.

    One store is shared per guest directory and per database URL, so every
    request writing the same files goes through the same lock.
    """
    if guest:
        from services.local_profile_store import LocalProfileStore

        with _stores_lock:
            store = _local_stores.get(config.GUEST_PROFILE_DIR)
            if store is None:
                store = LocalProfileStore(config.GUEST_PROFILE_DIR)
                _local_stores[config.GUEST_PROFILE_DIR] = store
            return store

    from services.database_profile_store import DatabaseProfileStore

    with _stores_lock:
        store = _database_stores.get(config.DATABASE_URL)
        if store is None:
            store = DatabaseProfileStore(config.DATABASE_URL)
            _database_stores[config.DATABASE_URL] = store
        return store
