"""Background music for guided sessions.

Staged sessions resolve music per (stage, stress level) from the curated
settings; custom exercises play a looping track from their music category.
Missing or inactive tracks mean silence, never an error. Only one
transition runs at a time; starting a new one cancels the previous.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from breathwork.config.settings import settings
from breathwork.db.models import BackgroundMusic, ExerciseMusicSetting
from breathwork.db.session import get_session
from breathwork.exercise.audio import AudioChannel, AudioClip, fade
from breathwork.exercise.errors import PlaybackError
from breathwork.exercise.models import MusicSetting, MusicTrack

DEFAULT_FADE_SECONDS = 2.0

# (kind, key): ("stage", stage_key) or ("category", music_category)
Target = tuple[str, str]


class MusicLibrary(ABC):
    """Source of music settings and category tracks."""

    @abstractmethod
    async def load_settings(self, stress_level: int) -> dict[str, MusicSetting]:
        """Return settings keyed by stage key."""
        raise NotImplementedError

    @abstractmethod
    async def track_for_category(self, category: str) -> MusicTrack | None:
        """Return an active track for ``category``, or None."""
        raise NotImplementedError


def _to_track(row: BackgroundMusic) -> MusicTrack:
    return MusicTrack(
        id=row.id,
        name=row.name,
        file_url=row.file_url,
        duration_seconds=row.duration,
        is_active=row.is_active,
    )


def _load_settings_sync(stress_level: int) -> dict[str, MusicSetting]:
    with get_session() as session:
        rows = session.execute(
            select(ExerciseMusicSetting)
            .options(selectinload(ExerciseMusicSetting.music))
            .where(ExerciseMusicSetting.stress_level == stress_level)
        ).scalars().all()

        result: dict[str, MusicSetting] = {}
        for row in rows:
            result[row.phase] = MusicSetting(
                stage_key=row.phase,
                music_track_id=row.music_id,
                volume=row.volume,
                fade_in_seconds=row.fade_in_duration,
                fade_out_seconds=row.fade_out_duration,
                track=_to_track(row.music) if row.music is not None else None,
            )
        return result


def tracks_for_category(category: str) -> list[MusicTrack]:
    """Active tracks tagged with ``category`` (case-insensitive), by name."""
    with get_session() as session:
        rows = session.execute(
            select(BackgroundMusic)
            .where(
                func.lower(BackgroundMusic.category) == category.strip().lower(),
                BackgroundMusic.is_active.is_(True),
            )
            .order_by(BackgroundMusic.name)
        ).scalars().all()
        return [_to_track(row) for row in rows]


class SqlMusicLibrary(MusicLibrary):
    async def load_settings(self, stress_level: int) -> dict[str, MusicSetting]:
        return await asyncio.to_thread(_load_settings_sync, stress_level)

    async def track_for_category(self, category: str) -> MusicTrack | None:
        tracks = await asyncio.to_thread(tracks_for_category, category)
        return tracks[0] if tracks else None


class MusicDriver:
    def __init__(
        self,
        channel: AudioChannel,
        library: MusicLibrary,
        stress_level: int,
        default_volume: float | None = None,
    ):
        self.channel = channel
        self.library = library
        self.stress_level = stress_level
        self.default_volume = settings.default_music_volume if default_volume is None else default_volume
        self.channel.loop = True

        self._settings: dict[str, MusicSetting] | None = None
        self._current_track_id: str | None = None
        self._current_setting: MusicSetting | None = None
        self._task: asyncio.Task | None = None
        self._target: Target | None = None
        self._interrupted: Target | None = None
        self._generation = 0
        self._paused = False

    @property
    def is_playing(self) -> bool:
        return self.channel.is_playing

    @property
    def current_track_id(self) -> str | None:
        return self._current_track_id

    async def load(self) -> None:
        try:
            self._settings = await self.library.load_settings(self.stress_level)
        except Exception as e:
            logger.warning(f"[MUSIC] Could not load music settings for level {self.stress_level}: {e}")
            self._settings = {}
        logger.debug(f"[MUSIC] Loaded {len(self._settings)} music settings", stress_level=self.stress_level)

    def _target_volume(self, setting: MusicSetting | None) -> float:
        if setting is None or setting.volume is None:
            return self.default_volume
        return max(0.0, min(1.0, setting.volume))

    @staticmethod
    def _fade_in(setting: MusicSetting | None) -> float:
        if setting is None or setting.fade_in_seconds is None:
            return DEFAULT_FADE_SECONDS
        return max(0.0, setting.fade_in_seconds)

    @staticmethod
    def _fade_out(setting: MusicSetting | None) -> float:
        if setting is None or setting.fade_out_seconds is None:
            return DEFAULT_FADE_SECONDS
        return max(0.0, setting.fade_out_seconds)

    def _replace_task(self, coro) -> asyncio.Task:
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(coro)
        return self._task

    def _start(self, target: Target) -> asyncio.Task:
        self._paused = False
        self._interrupted = None
        self._target = target
        return self._replace_task(self._transition(target, self._generation + 1))

    def start_for_stage(self, stage_key: str) -> asyncio.Task:
        """Switch music to the track configured for ``stage_key``. Never raises."""
        return self._start(("stage", stage_key))

    def start_for_category(self, category: str) -> asyncio.Task:
        """Switch music to a looping track from ``category``. Never raises."""
        return self._start(("category", category))

    async def _transition(self, target: Target, generation: int) -> None:
        kind, key = target
        try:
            if kind == "stage":
                await self._apply_stage(key, generation)
            else:
                await self._apply_category(key, generation)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[MUSIC] Transition to {kind} {key} failed, continuing without music: {e}")

    async def _apply_stage(self, stage_key: str, generation: int) -> None:
        if self._settings is None:
            await self.load()
        if generation != self._generation:
            return

        setting = self._settings.get(stage_key)
        track = setting.track if setting is not None and setting.music_track_id else None
        await self._play(track, setting, generation, f"stage {stage_key}")

    async def _apply_category(self, category: str, generation: int) -> None:
        track = await self.library.track_for_category(category)
        if generation != self._generation:
            return
        setting = None
        if track is not None:
            setting = MusicSetting(stage_key=category, music_track_id=track.id, track=track)
        await self._play(track, setting, generation, f"category {category}")

    async def _play(self, track: MusicTrack | None, setting: MusicSetting | None, generation: int, label: str) -> None:
        if track is None or not track.is_active:
            logger.debug(f"[MUSIC] No music for {label}")
            await self._silence()
            return

        target = self._target_volume(setting)
        fade_in = self._fade_in(setting)

        if track.id == self._current_track_id:
            if not self.channel.is_playing:
                await self.channel.resume()
            await fade(self.channel, self.channel.volume, target, max(fade_in, self._fade_out(setting)))
            self._current_setting = setting
            return

        if self._current_track_id is not None and self.channel.is_playing:
            await fade(self.channel, self.channel.volume, 0.0, self._fade_out(self._current_setting))
        if generation != self._generation:
            return

        self.channel.loop = True
        await self.channel.load(AudioClip(clip_id=track.id, url=track.file_url))
        await self.channel.set_volume(0.0)
        try:
            await self.channel.play()
        except PlaybackError as e:
            logger.warning(f"[MUSIC] Could not play {track.name}: {e}")
            self._current_track_id = None
            self._current_setting = None
            return

        self._current_track_id = track.id
        self._current_setting = setting
        logger.info(f"[MUSIC] Playing {track.name} for {label}", volume=target)
        await fade(self.channel, 0.0, target, fade_in)

    async def _silence(self) -> None:
        if self.channel.is_playing:
            await fade(self.channel, self.channel.volume, 0.0, self._fade_out(self._current_setting))
        await self.channel.unload()
        self._current_track_id = None
        self._current_setting = None

    def fade_out(self) -> asyncio.Task:
        """Fade whatever is playing to silence and unload it."""
        self._paused = False
        self._target = None
        self._interrupted = None
        return self._replace_task(self._silence())

    async def stop(self) -> None:
        """Cut the music immediately."""
        self._generation += 1
        self._paused = False
        self._target = None
        self._interrupted = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        await self.channel.unload()
        self._current_track_id = None
        self._current_setting = None

    async def pause(self) -> None:
        """Pause playback. A transition cut short here is rerun on resume."""
        self._generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self._interrupted = self._target
        if self.channel.is_playing:
            self._paused = True
            await self.channel.pause()

    async def resume(self) -> None:
        interrupted, self._interrupted = self._interrupted, None
        if self._paused:
            self._paused = False
            await self.channel.resume()
            if interrupted is None and self._current_setting is not None:
                await self.channel.set_volume(self._target_volume(self._current_setting))
        if interrupted is not None:
            self._start(interrupted)
