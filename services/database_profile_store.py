import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from models.profile import GameResult, LeaderboardEntry, UserProfile
from models.records import Base, CompletedDateRecord, GameResultRecord, ProfileRecord
from models.subject import Grade, Subject
from services.exceptions import PersistenceFailure
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


class DatabaseProfileStore(ProfileStore):
    """Shared profile store for signed-in users, backed by SQLAlchemy."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = create_engine(database_url, **_engine_options(database_url))
        self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Profile database error: %s", e)
            raise PersistenceFailure(f"Profile database error: {e}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        with self._session() as session:
            record = session.get(ProfileRecord, user_id)
            return _to_profile(record) if record else None

    def create_profile(
        self, user_id: str, name: str, grade: Grade, avatar: Optional[str] = None
    ) -> UserProfile:
        with self._session() as session:
            record = session.get(ProfileRecord, user_id)
            if record is None:
                record = ProfileRecord(
                    user_id=user_id,
                    total_points=0,
                    games_played=0,
                    created_at=datetime.now(timezone.utc),
                )
                session.add(record)
            record.name = name
            record.grade = grade.value
            record.avatar = avatar
            record.last_active = datetime.now(timezone.utc)
            session.flush()
            return _to_profile(record)

    def append_completed_date(self, user_id: str, date_str: str) -> None:
        with self._session() as session:
            record = self._require(session, user_id)
            self._add_date(session, record, date_str)

    def accumulate_points(self, user_id: str, delta: int) -> None:
        with self._session() as session:
            record = self._require(session, user_id)
            record.total_points += delta
            record.last_active = datetime.now(timezone.utc)

    def persist(
        self,
        user_id: str,
        subject: Subject,
        grade: Grade,
        final_score: int,
        total_questions: int,
        date_str: str,
    ) -> GameResult:
        with self._session() as session:
            record = self._require(session, user_id)
            result = GameResultRecord(
                user_id=user_id,
                subject=subject.value,
                grade=grade.value,
                score=final_score,
                total_questions=total_questions,
                played_on=date_str,
                played_at=datetime.now(timezone.utc),
            )
            session.add(result)
            record.total_points += final_score
            record.games_played += 1
            record.last_active = datetime.now(timezone.utc)
            self._add_date(session, record, date_str)
            session.flush()
            return _to_result(result)

    def games_played_today(self, user_id: str, subject: Subject, date_str: str) -> int:
        with self._session() as session:
            return session.scalar(
                select(func.count(GameResultRecord.id)).where(
                    GameResultRecord.user_id == user_id,
                    GameResultRecord.subject == subject.value,
                    GameResultRecord.played_on == date_str,
                )
            )

    def recent_results(self, user_id: str, limit: int = 20) -> List[GameResult]:
        with self._session() as session:
            rows = session.scalars(
                select(GameResultRecord)
                .where(GameResultRecord.user_id == user_id)
                .order_by(GameResultRecord.played_at.desc(), GameResultRecord.id.desc())
                .limit(limit)
            )
            return [_to_result(row) for row in rows]

    def leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        with self._session() as session:
            rows = session.scalars(
                select(ProfileRecord)
                .order_by(ProfileRecord.total_points.desc(), ProfileRecord.user_id)
                .limit(limit)
            )
            return [
                LeaderboardEntry(
                    rank=rank,
                    user_id=row.user_id,
                    name=row.name,
                    grade=Grade(row.grade),
                    total_points=row.total_points,
                    avatar=row.avatar,
                )
                for rank, row in enumerate(rows, 1)
            ]

    def _require(self, session: Session, user_id: str) -> ProfileRecord:
        record = session.get(ProfileRecord, user_id)
        if record is None:
            raise PersistenceFailure(f"No profile stored for user {user_id}")
        return record

    def _add_date(self, session: Session, record: ProfileRecord, date_str: str) -> None:
        if any(d.date == date_str for d in record.completed_dates):
            return
        record.completed_dates.append(
            CompletedDateRecord(user_id=record.user_id, date=date_str)
        )


def _engine_options(database_url: str) -> dict:
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


def _to_profile(record: ProfileRecord) -> UserProfile:
    return UserProfile(
        user_id=record.user_id,
        name=record.name,
        grade=Grade(record.grade),
        avatar=record.avatar,
        total_points=record.total_points,
        games_played=record.games_played,
        completed_dates=sorted(d.date for d in record.completed_dates),
        created_at=record.created_at,
        last_active=record.last_active,
    )


def _to_result(record: GameResultRecord) -> GameResult:
    return GameResult(
        user_id=record.user_id,
        subject=Subject(record.subject),
        grade=Grade(record.grade),
        score=record.score,
        total_questions=record.total_questions,
        played_on=record.played_on,
        played_at=record.played_at,
    )
