import json
import logging
import os
import re
import tempfile
from threading import Lock
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from models.profile import GameResult, LeaderboardEntry, UserProfile
from models.subject import Grade, Subject
from services.exceptions import PersistenceFailure
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class LocalProfileStore(ProfileStore):
    """
    File-backed key-value store: one JSON document per user.

    The document holds the profile and the list of finished quizzes.
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self._lock = Lock()

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            document = self._load(user_id)
        if document is None:
            return None
        return document["profile"]

    def create_profile(
        self, user_id: str, name: str, grade: Grade, avatar: Optional[str] = None
    ) -> UserProfile:
        with self._lock:
            document = self._load(user_id)
            if document is not None:
                profile = document["profile"]
                profile.name = name
                profile.grade = grade
                profile.avatar = avatar
                profile.update_activity()
            else:
                profile = UserProfile(
                    user_id=user_id, name=name, grade=grade, avatar=avatar
                )
                document = {"profile": profile, "results": []}
            self._save(user_id, document)
            return profile

    def append_completed_date(self, user_id: str, date_str: str) -> None:
        with self._lock:
            document = self._require(user_id)
            if document["profile"].append_completed_date(date_str):
                self._save(user_id, document)

    def accumulate_points(self, user_id: str, delta: int) -> None:
        with self._lock:
            document = self._require(user_id)
            document["profile"].accumulate_points(delta)
            self._save(user_id, document)

    def persist(
        self,
        user_id: str,
        subject: Subject,
        grade: Grade,
        final_score: int,
        total_questions: int,
        date_str: str,
    ) -> GameResult:
        with self._lock:
            document = self._require(user_id)
            result = GameResult(
                user_id=user_id,
                subject=subject,
                grade=grade,
                score=final_score,
                total_questions=total_questions,
                played_on=date_str,
            )
            profile = document["profile"]
            profile.accumulate_points(final_score)
            profile.games_played += 1
            profile.append_completed_date(date_str)
            document["results"].append(result)
            self._save(user_id, document)
            return result

    def games_played_today(self, user_id: str, subject: Subject, date_str: str) -> int:
        with self._lock:
            document = self._load(user_id)
        if document is None:
            return 0
        return sum(
            1
            for result in document["results"]
            if result.subject == subject and result.played_on == date_str
        )

    def recent_results(self, user_id: str, limit: int = 20) -> List[GameResult]:
        with self._lock:
            document = self._load(user_id)
        if document is None:
            return []
        results = sorted(document["results"], key=lambda r: r.played_at, reverse=True)
        return results[:limit]

    def leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        profiles = []
        with self._lock:
            if os.path.isdir(self.data_dir):
                for filename in sorted(os.listdir(self.data_dir)):
                    if filename.endswith(".json"):
                        try:
                            document = self._read_file(
                                os.path.join(self.data_dir, filename)
                            )
                        except PersistenceFailure as e:
                            logger.warning("Skipping guest profile %s: %s", filename, e)
                            continue
                        if document is not None:
                            profiles.append(document["profile"])

        profiles.sort(key=lambda p: p.total_points, reverse=True)
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=profile.user_id,
                name=profile.name,
                grade=profile.grade,
                total_points=profile.total_points,
                avatar=profile.avatar,
            )
            for rank, profile in enumerate(profiles[:limit], 1)
        ]

    def _path(self, user_id: str) -> str:
        return os.path.join(self.data_dir, f"{_UNSAFE_CHARS.sub('_', user_id)}.json")

    def _require(self, user_id: str) -> Dict[str, Any]:
        document = self._load(user_id)
        if document is None:
            raise PersistenceFailure(f"No profile stored for user {user_id}")
        return document

    def _load(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._read_file(self._path(user_id))

    def _read_file(self, path: str) -> Optional[Dict[str, Any]]:
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return {
                "profile": UserProfile.model_validate(raw["profile"]),
                "results": [GameResult.model_validate(r) for r in raw.get("results", [])],
            }
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            raise PersistenceFailure(f"Could not read profile file {path}: {e}")

    def _save(self, user_id: str, document: Dict[str, Any]) -> None:
        path = self._path(user_id)
        payload = {
            "profile": document["profile"].model_dump(mode="json"),
            "results": [r.model_dump(mode="json") for r in document["results"]],
        }
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            handle = tempfile.NamedTemporaryFile(
                "w", delete=False, encoding="utf-8", dir=self.data_dir, suffix=".tmp"
            )
            try:
                json.dump(payload, handle, indent=2)
            finally:
                handle.close()
            os.replace(handle.name, path)
        except OSError as e:
            logger.error("Failed to write profile for %s: %s", user_id, e)
            raise PersistenceFailure(f"Could not save profile for user {user_id}: {e}")
