from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ProfileRecord(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade: Mapped[str] = mapped_column(String(20), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(255))
    total_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    games_played: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    completed_dates: Mapped[list["CompletedDateRecord"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self):
        return f"<ProfileRecord {self.user_id}>"


class CompletedDateRecord(Base):
    __tablename__ = "completed_dates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.user_id"), nullable=False, index=True
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)

    profile: Mapped[ProfileRecord] = relationship(back_populates="completed_dates")

    __table_args__ = (UniqueConstraint("user_id", "date", name="_user_date_uc"),)


class GameResultRecord(Base):
    __tablename__ = "game_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.user_id"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(String(20), nullable=False)
    grade: Mapped[str] = mapped_column(String(20), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    played_on: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    played_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
