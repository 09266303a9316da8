"""Operator endpoints for background music assets and per-stage music settings."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select, update

from breathwork.api.dependencies.auth import require_admin
from breathwork.db.models import BackgroundMusic, ExerciseMusicSetting
from breathwork.db.session import get_session
from breathwork.exercise.stages import STAGE_KEYS

router = APIRouter(prefix="/admin", tags=["admin"])


class MusicTrackCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    file_url: str = Field(min_length=1)
    duration: int = Field(default=0, ge=0)
    category: str | None = None


class MusicTrackUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = None
    is_active: bool | None = None


class MusicTrackResponse(BaseModel):
    id: str
    name: str
    file_url: str
    duration: int
    category: str | None
    is_active: bool
    created_at: datetime


class MusicSettingUpsert(BaseModel):
    phase: str
    stress_level: int = Field(ge=1, le=5)
    music_id: str | None = None
    volume: float = Field(default=0.1, ge=0.0, le=1.0)
    fade_in_duration: float = Field(default=2.0, ge=0.0)
    fade_out_duration: float = Field(default=2.0, ge=0.0)

    @field_validator("phase")
    @classmethod
    def validate_phase(cls, value: str) -> str:
        if value not in STAGE_KEYS:
            raise ValueError(f"Unknown phase '{value}'. Valid phases: {', '.join(STAGE_KEYS)}")
        return value


class MusicSettingResponse(BaseModel):
    id: str
    phase: str
    stress_level: int
    music_id: str | None
    music_name: str | None
    volume: float
    fade_in_duration: float
    fade_out_duration: float


def _track_response(track: BackgroundMusic) -> MusicTrackResponse:
    return MusicTrackResponse(
        id=track.id,
        name=track.name,
        file_url=track.file_url,
        duration=track.duration,
        category=track.category,
        is_active=track.is_active,
        created_at=track.created_at,
    )


def _setting_response(setting: ExerciseMusicSetting) -> MusicSettingResponse:
    return MusicSettingResponse(
        id=setting.id,
        phase=setting.phase,
        stress_level=setting.stress_level,
        music_id=setting.music_id,
        music_name=setting.music.name if setting.music else None,
        volume=setting.volume,
        fade_in_duration=setting.fade_in_duration,
        fade_out_duration=setting.fade_out_duration,
    )


@router.get("/music", response_model=list[MusicTrackResponse])
def list_tracks(
    include_inactive: bool = Query(default=True),
    _admin_id: str = Depends(require_admin),
) -> list[MusicTrackResponse]:
    with get_session() as session:
        query = select(BackgroundMusic).order_by(BackgroundMusic.created_at.desc())
        if not include_inactive:
            query = query.where(BackgroundMusic.is_active.is_(True))
        return [_track_response(track) for track in session.execute(query).scalars().all()]


@router.post("/music", response_model=MusicTrackResponse, status_code=status.HTTP_201_CREATED)
def create_track(request: MusicTrackCreate, _admin_id: str = Depends(require_admin)) -> MusicTrackResponse:
    with get_session() as session:
        track = BackgroundMusic(
            name=request.name.strip(),
            file_url=request.file_url,
            duration=request.duration,
            category=request.category,
        )
        session.add(track)
        session.flush()
        logger.info(f"[ADMIN] Music track created: {track.name}", track_id=track.id)
        return _track_response(track)


@router.patch("/music/{track_id}", response_model=MusicTrackResponse)
def update_track(
    track_id: str,
    request: MusicTrackUpdate,
    _admin_id: str = Depends(require_admin),
) -> MusicTrackResponse:
    with get_session() as session:
        track = session.get(BackgroundMusic, track_id)
        if track is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Music track not found")
        for field_name, value in request.model_dump(exclude_unset=True).items():
            setattr(track, field_name, value)
        session.flush()
        return _track_response(track)


@router.delete("/music/{track_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_track(track_id: str, _admin_id: str = Depends(require_admin)) -> None:
    """Deactivate a track and detach it from every stage that used it."""
    with get_session() as session:
        track = session.get(BackgroundMusic, track_id)
        if track is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Music track not found")
        track.is_active = False
        cleared = session.execute(
            update(ExerciseMusicSetting)
            .where(ExerciseMusicSetting.music_id == track_id)
            .values(music_id=None)
        ).rowcount
        logger.info(f"[ADMIN] Music track {track_id} removed", cleared_settings=cleared)


@router.get("/music-settings", response_model=list[MusicSettingResponse])
def list_music_settings(
    stress_level: int = Query(ge=1, le=5),
    _admin_id: str = Depends(require_admin),
) -> list[MusicSettingResponse]:
    with get_session() as session:
        settings_rows = session.execute(
            select(ExerciseMusicSetting).where(ExerciseMusicSetting.stress_level == stress_level)
        ).scalars().all()
        order = {key: index for index, key in enumerate(STAGE_KEYS)}
        settings_rows = sorted(settings_rows, key=lambda row: order.get(row.phase, len(order)))
        return [_setting_response(row) for row in settings_rows]


@router.put("/music-settings", response_model=MusicSettingResponse)
def upsert_music_setting(request: MusicSettingUpsert, _admin_id: str = Depends(require_admin)) -> MusicSettingResponse:
    """Create or replace the setting for one (phase, stress level)."""
    with get_session() as session:
        if request.music_id is not None:
            track = session.get(BackgroundMusic, request.music_id)
            if track is None or not track.is_active:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Music track not found or inactive")

        setting = session.execute(
            select(ExerciseMusicSetting).where(
                ExerciseMusicSetting.phase == request.phase,
                ExerciseMusicSetting.stress_level == request.stress_level,
            )
        ).scalar_one_or_none()
        if setting is None:
            setting = ExerciseMusicSetting(phase=request.phase, stress_level=request.stress_level)
            session.add(setting)

        setting.music_id = request.music_id
        setting.volume = request.volume
        setting.fade_in_duration = request.fade_in_duration
        setting.fade_out_duration = request.fade_out_duration
        session.flush()
        session.refresh(setting)

        logger.info(
            f"[ADMIN] Music setting saved for {request.phase} at level {request.stress_level}",
            music_id=request.music_id,
        )
        return _setting_response(setting)
