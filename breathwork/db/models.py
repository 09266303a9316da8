from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all database models."""


class User(Base):
    """User account and profile.

    Stores:
    - id: User ID (string UUID format)
    - email: Login email (unique)
    - password_hash: bcrypt hash
    - first_name / last_name: Profile names used in narration
    - is_active: Inactive accounts cannot authenticate
    - created_at / last_login_at: Timestamps (UTC)
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id, index=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    stress_entries: Mapped[list[StressEntry]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or self.email


class StressEntry(Base):
    """Subjective stress score logged by a user or by a completed breathing session.

    Entries are immutable facts: inserted, listed and deleted, never updated.
    """

    __tablename__ = "stress_entries"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id, index=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    stress_score: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow, index=True)

    user: Mapped[User] = relationship(back_populates="stress_entries")

    __table_args__ = (
        CheckConstraint("stress_score >= 1 AND stress_score <= 5", name="ck_stress_entries_score_range"),
        Index("idx_stress_entries_user_created", "user_id", "created_at"),
    )


class BackgroundMusic(Base):
    """Curated background music asset.

    file_url points at blob storage; inactive tracks are never played.
    """

    __tablename__ = "background_music"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    file_url: Mapped[str] = mapped_column(String, nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)


class ExerciseMusicSetting(Base):
    """Music choice for one exercise stage at one stress level.

    A NULL music_id means the stage plays without music.
    """

    __tablename__ = "exercise_music_settings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id, index=True)
    phase: Mapped[str] = mapped_column(String, nullable=False)
    stress_level: Mapped[int] = mapped_column(Integer, nullable=False)
    music_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("background_music.id", ondelete="SET NULL"),
        nullable=True,
    )
    volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.1)
    fade_in_duration: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    fade_out_duration: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)

    music: Mapped[BackgroundMusic | None] = relationship()

    __table_args__ = (
        UniqueConstraint("phase", "stress_level", name="uq_music_setting_phase_level"),
        CheckConstraint("volume >= 0 AND volume <= 1", name="ck_music_setting_volume_range"),
    )
